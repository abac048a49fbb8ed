"""Selection policies: which agent takes the next turn."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from agentcrew.utils.logging_utils import log_routing_decision

from .history import Message

if TYPE_CHECKING:
    from agentcrew.agents.agent import Agent
    from agentcrew.agents.backend import AgentBackend

LOGGER = logging.getLogger(__name__)

ROUTER_ID = "router"

ROUTER_SYSTEM_PROMPT = """You moderate a group of agents working on one task. Your only job is to decide which agent speaks next using the route_to_agent tool.

Guidelines:
- If an agent is addressed or mentioned by name, let it speak.
- Pick the agent whose description best matches the next step of the task.
- After work is produced, let the reviewer look at it.

You MUST call route_to_agent. Do not reply with text."""


class SelectionStrategy(ABC):
    """Picks the next agent from the session's ordered agent list."""

    @abstractmethod
    async def select(self, agents: Sequence["Agent"], history: Sequence[Message]) -> "Agent":
        ...


class RoundRobinSelection(SelectionStrategy):
    """Static order, starting with the first agent."""

    def __init__(self) -> None:
        self._next = 0

    async def select(self, agents: Sequence["Agent"], history: Sequence[Message]) -> "Agent":
        if not agents:
            raise ValueError("No agents to select from")
        agent = agents[self._next % len(agents)]
        self._next += 1
        log_routing_decision(LOGGER, "round_robin", agent.id)
        return agent


def create_routing_tool(agents: Sequence["Agent"]) -> Dict[str, Any]:
    """OpenAI-style schema for ``route_to_agent`` restricted to agent ids."""
    return {
        "type": "function",
        "function": {
            "name": "route_to_agent",
            "description": "Select the agent that should speak next.",
            "parameters": {
                "type": "object",
                "properties": {
                    "agent_name": {
                        "type": "string",
                        "enum": [agent.id for agent in agents],
                        "description": "Id of the next agent",
                    },
                    "reason": {"type": "string", "description": "Short reason for the choice"},
                },
                "required": ["agent_name"],
            },
        },
    }


class RouterSelection(SelectionStrategy):
    """A routing backend chooses the next agent via ``route_to_agent``.

    Unknown or missing choices (or a failing router) fall back to the default
    agent, the first one unless ``default_agent_id`` says otherwise.
    """

    def __init__(
        self,
        backend: "AgentBackend",
        instructions: str = ROUTER_SYSTEM_PROMPT,
        default_agent_id: Optional[str] = None,
    ):
        self.backend = backend
        self.instructions = instructions
        self.default_agent_id = default_agent_id

    def _default(self, agents: Sequence["Agent"]) -> "Agent":
        if self.default_agent_id:
            for agent in agents:
                if agent.id == self.default_agent_id:
                    return agent
        return agents[0]

    async def select(self, agents: Sequence["Agent"], history: Sequence[Message]) -> "Agent":
        from agentcrew.agents.backend import GenerationRequest

        if not agents:
            raise ValueError("No agents to select from")

        roster = "\n".join(f"- {agent.id}: {agent.description or 'no description'}" for agent in agents)
        instruction = Message.user(f"Agents in this conversation:\n{roster}\n\nWho should speak next?")
        request = GenerationRequest(
            agent_id=ROUTER_ID,
            instructions=self.instructions,
            messages=(*history, instruction),
            tools=(create_routing_tool(agents),),
        )

        try:
            response = await self.backend.generate(request)
        except Exception as e:
            LOGGER.error(f"Router failed, falling back to default agent: {e}")
            agent = self._default(agents)
            log_routing_decision(LOGGER, ROUTER_ID, agent.id, "router error fallback")
            return agent

        by_id = {agent.id.lower(): agent for agent in agents}
        for call in response.tool_calls:
            if call.name != "route_to_agent":
                continue
            chosen = str(call.arguments.get("agent_name", "")).strip().lower()
            if chosen in by_id:
                agent = by_id[chosen]
                log_routing_decision(LOGGER, ROUTER_ID, agent.id, str(call.arguments.get("reason", "")))
                return agent
            LOGGER.warning(f"Router chose unknown agent '{chosen}'")

        agent = self._default(agents)
        log_routing_decision(LOGGER, ROUTER_ID, agent.id, "no valid choice, using default")
        return agent


__all__ = [
    "ROUTER_SYSTEM_PROMPT",
    "RoundRobinSelection",
    "RouterSelection",
    "SelectionStrategy",
    "create_routing_tool",
]
