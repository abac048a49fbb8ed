"""AgentBackend adapter over LangChain chat models.

Shared history is rendered from the acting agent's point of view: its own
messages become ``AIMessage`` (with synthesized tool calls for its tool
results) and everything said by other speakers becomes a ``HumanMessage``
prefixed with the speaker name.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from agentcrew.orchestration.history import USER, Message, Role

from .backend import BackendResponse, GenerationRequest, ToolCallRequest, new_call_id

LOGGER = logging.getLogger(__name__)


def to_langchain_messages(
    agent_id: str,
    instructions: str,
    messages: Sequence[Message],
) -> List[BaseMessage]:
    """Convert shared history into the message list for ``agent_id``."""
    prepared: List[BaseMessage] = []
    if instructions:
        prepared.append(SystemMessage(content=instructions))

    # 连续的自身工具结果合并到一条合成的 AIMessage(tool_calls=...) 之后
    pending_calls: List[Dict[str, Any]] = []
    pending_results: List[ToolMessage] = []

    def flush() -> None:
        if pending_calls:
            prepared.append(AIMessage(content="", tool_calls=list(pending_calls)))
            prepared.extend(pending_results)
            pending_calls.clear()
            pending_results.clear()

    for message in messages:
        if message.role == Role.TOOL and message.author == agent_id:
            call_id = message.tool_call_id or new_call_id()
            pending_calls.append({
                "name": message.tool_name or "",
                "args": dict(message.tool_arguments or {}),
                "id": call_id,
            })
            pending_results.append(
                ToolMessage(content=message.content, tool_call_id=call_id, name=message.tool_name)
            )
            continue

        flush()

        if message.role == Role.USER or message.author == USER:
            prepared.append(HumanMessage(content=message.content))
        elif message.role == Role.ASSISTANT and message.author == agent_id:
            prepared.append(AIMessage(content=message.content))
        elif message.role == Role.ASSISTANT:
            prepared.append(HumanMessage(content=f"[{message.author}]: {message.content}"))
        else:
            prepared.append(
                HumanMessage(content=f"[{message.author} used {message.tool_name}]: {message.content}")
            )

    flush()
    return prepared


def _text_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class ChatModelBackend:
    """Drive a LangChain chat model (``bind_tools`` + ``ainvoke``)."""

    def __init__(self, model: BaseChatModel, **bind_kwargs: Any):
        self.model = model
        self.bind_kwargs = bind_kwargs

    async def generate(self, request: GenerationRequest) -> BackendResponse:
        messages = to_langchain_messages(request.agent_id, request.instructions, request.messages)

        runnable: Any = self.model
        if request.tools:
            runnable = self.model.bind_tools(list(request.tools), **self.bind_kwargs)

        LOGGER.debug(f"Invoking model for {request.agent_id} ({len(messages)} messages, {len(request.tools)} tools)")
        ai_message = await runnable.ainvoke(messages)

        tool_calls = tuple(
            ToolCallRequest(
                name=call["name"],
                arguments=call.get("args") or {},
                call_id=call.get("id") or new_call_id(),
            )
            for call in getattr(ai_message, "tool_calls", None) or []
        )

        invalid = getattr(ai_message, "invalid_tool_calls", None) or []
        if invalid and not tool_calls:
            names = ", ".join(str(call.get("name")) for call in invalid)
            raise ValueError(f"Model returned unparseable tool calls: {names}")

        return BackendResponse(content=_text_content(ai_message.content), tool_calls=tool_calls)


__all__ = ["ChatModelBackend", "to_langchain_messages"]
