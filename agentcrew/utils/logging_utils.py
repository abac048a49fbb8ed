"""Logging utilities for AgentCrew."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_NAME = "agentcrew"


def setup_logging(
    level: int | str = logging.INFO,
    log_dir: Optional[str | Path] = "logs",
) -> logging.Logger:
    """Setup logging configuration for AgentCrew.

    Args:
        level: Console logging level (default: INFO)
        log_dir: Directory for the detailed log file, None to skip file logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture all child logs, handlers filter
    logger.propagate = False

    logger.handlers = []

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    log_file = None
    if log_dir:
        logs_path = Path(log_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        log_file = logs_path / f"agentcrew_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

        # File handler (detailed logs)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(file_handler)

    logger.info("=" * 80)
    logger.info("AgentCrew session started")
    if log_file:
        logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def _preview(value: Any, max_length: int) -> str:
    text = str(value)
    if len(text) > max_length:
        text = text[:max_length] + "... (truncated)"
    return text


def log_tool_call(logger: logging.Logger, agent_id: str, tool_name: str, args: Dict[str, Any]) -> None:
    """Log tool invocation requested by an agent."""
    logger.info(f"Tool call: {agent_id} → {tool_name}")
    logger.debug(f"  Arguments: {json.dumps(args, ensure_ascii=False, indent=2, default=str)}")


def log_tool_result(
    logger: logging.Logger,
    tool_name: str,
    result: Any,
    success: bool = True,
    max_length: int = 500,
) -> None:
    """Log tool execution result."""
    status = "✓ Success" if success else "✗ Failed"
    logger.info(f"Tool result: {tool_name} - {status}")
    logger.debug(f"  Result: {_preview(result, max_length)}")


def log_turn(logger: logging.Logger, turn: int, agent_id: str, message_count: int) -> None:
    """Log a completed agent turn."""
    logger.info(f"Turn {turn} completed by {agent_id} (+{message_count} messages)")


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log which agent was selected for the next turn.

    Args:
        logger: Logger instance
        from_node: Selection policy making the decision
        decision: Selected agent id
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.debug(f"  → Reason: {reason}")


def log_user_message(logger: logging.Logger, content: str) -> None:
    """Log user input."""
    logger.info(f"User input: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_agent_response(logger: logging.Logger, agent_id: str, content: str) -> None:
    """Log agent response."""
    logger.info(f"Agent response ({agent_id}): {content[:100]}{'...' if len(content) > 100 else ''}")


def log_error(logger: logging.Logger, error: BaseException, context: str = "") -> None:
    """Log error with context and traceback."""
    logger.error(f"Error occurred: {type(error).__name__}: {error}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)
