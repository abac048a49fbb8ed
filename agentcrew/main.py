"""Interactive CLI: run a crew against user input, printing every appended message."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from agentcrew.config import get_settings
from agentcrew.errors import AgentCrewError
from agentcrew.interceptors.approval import ApprovalDecision
from agentcrew.orchestration.history import ConversationHistory, Message, Role
from agentcrew.orchestration.session import Session
from agentcrew.persistence import HistoryStore
from agentcrew.runtime import Application, build_application
from agentcrew.tools.invocation import ToolInvocation
from agentcrew.utils.logging_utils import log_error, setup_logging

HELP_TEXT = """命令列表:
  /quit, /exit    - 退出程序
  /help           - 显示帮助
  /history        - 打印当前会话的全部消息
  /reset          - 开始新的会话（清空历史）
  /sessions       - 列出已保存的会话（需要配置 HISTORY_DB_PATH）
  /load <id>      - 加载指定会话（使用会话ID前几位）"""


def format_message(message: Message, session: Optional[Session] = None) -> str:
    if message.role == Role.USER:
        return f"User > {message.content}"

    name = message.author
    if session is not None:
        agent = session.get_agent(message.author)
        if agent is not None:
            name = agent.display_name

    if message.role == Role.TOOL:
        status = "error" if message.is_error else "ok"
        return f"{name} (tool:{message.tool_name}, {status}) > {message.content}"
    return f"{name} ({message.role.value}) > {message.content}"


async def _prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip()


async def cli_approver(call: ToolInvocation, decision: ApprovalDecision) -> bool:
    print(f"\n⚠️  {call.agent_id} 请求执行 {call.tool_name}（风险: {decision.risk_level}）")
    print(f"   原因: {decision.reason}")
    print(f"   参数: {dict(call.arguments)}")
    answer = await _prompt("是否批准? [y/N] ")
    return answer.lower() in {"y", "yes"}


def _continue_session(app: Application, session: Session) -> Session:
    """A finished session accepts no input; continue the conversation in a fresh one."""
    return app.new_session(
        session_id=session.session_id,
        history=ConversationHistory(session.history.messages),
    )


async def _run(session: Session, store: Optional[HistoryStore]) -> None:
    async for message in session.invoke():
        print(format_message(message, session))

    outcome = session.outcome
    print(f"\n[IS COMPLETED: {session.is_complete}]" + (f" {outcome.reason}" if outcome else ""))

    if store is not None:
        store.save(session.session_id, session.history, status=session.status.value)


async def async_main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="agentcrew", description="Run a multi-agent crew interactively.")
    parser.add_argument("--crew", type=Path, required=True, help="Path to crew.yaml")
    parser.add_argument("--mcp", type=Path, default=None, help="Path to mcp_servers.yaml")
    parser.add_argument("--log-level", default=None, help="Console log level (default from LOG_LEVEL)")
    args = parser.parse_args(argv)

    settings = get_settings()
    observability = settings.observability
    logger = setup_logging(
        level=(args.log_level or observability.log_level).upper(),
        log_dir=observability.log_dir,
    )
    store = HistoryStore(observability.history_db_path) if observability.history_db_path else None

    try:
        app = await build_application(args.crew, args.mcp, settings=settings, approver=cli_approver)
    except AgentCrewError as e:
        log_error(logger, e, context="startup")
        print(f"启动失败: {e.user_message}")
        return 1

    session = app.new_session()
    print(f"AgentCrew CLI 已就绪: {app.crew.name}")
    print(f"会话 ID: {session.session_id[:8]}...")
    print("参与者: " + ", ".join(agent.display_name for agent in session.agents))
    print(HELP_TEXT + "\n")

    try:
        while True:
            try:
                user_input = await _prompt("User > ")
            except (KeyboardInterrupt, EOFError):
                print("\n再见！")
                logger.info("Session ended by user")
                break

            if not user_input:
                continue

            command = user_input.lower()
            if command in {"/quit", "/exit"}:
                print("会话结束。")
                logger.info("Session ended by /quit command")
                break

            if command == "/help":
                print(HELP_TEXT)
                continue

            if command == "/history":
                for message in session.history:
                    print(format_message(message, session))
                print(f"[{len(session.history)} 条消息, 轮次 {session.turn_count}, 状态 {session.status.value}]")
                continue

            if command == "/reset":
                session = app.new_session()
                print(f"状态已重置。新会话 ID: {session.session_id[:8]}...")
                continue

            if command == "/sessions":
                if store is None:
                    print("未配置 HISTORY_DB_PATH，无法列出会话。")
                    continue
                for sid, status, _, updated_at, count in store.list_sessions():
                    print(f"  {sid[:16]}... | {status or '-'} | 消息数: {count} | 更新时间: {updated_at[:16]}")
                continue

            if command.startswith("/load"):
                prefix = user_input[5:].strip()
                if store is None or not prefix:
                    print("用法: /load <id>（需要配置 HISTORY_DB_PATH）")
                    continue
                matching = [row[0] for row in store.list_sessions() if row[0].startswith(prefix)]
                if len(matching) != 1:
                    print(f"找到 {len(matching)} 个匹配的会话，请提供唯一的ID前缀。")
                    continue
                session = app.new_session(session_id=matching[0], history=store.load(matching[0]))
                print(f"已加载会话 {matching[0][:8]}... ({len(session.history)} 条消息)")
                continue

            if session.status.is_terminal:
                session = _continue_session(app, session)

            try:
                session.submit_user_message(user_input)
                await _run(session, store)
            except AgentCrewError as e:
                log_error(logger, e, context="session run")
                print(f"错误: {e.user_message}")
    finally:
        await app.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    raise SystemExit(main())
