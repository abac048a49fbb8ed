"""Crew definition schema (crew.yaml) and loader."""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from agentcrew.errors import ConfigurationError


class AgentConfig(BaseModel):
    """One agent of the crew.

    ``role: delegate`` agents never take turns; they are only reachable through
    the ``call_<id>`` tool created when ``expose_as_tool`` is set.
    """

    id: str = Field(min_length=1)
    name: Optional[str] = None
    description: str = ""
    instructions: str = ""
    tools: List[str] = Field(default_factory=list)
    capability_set: Optional[str] = None
    model: Optional[str] = None
    role: Literal["participant", "delegate"] = "participant"
    expose_as_tool: bool = False
    tool_name: Optional[str] = None
    max_tool_rounds: Optional[int] = Field(default=None, ge=1, le=100)

    @property
    def capability_set_name(self) -> str:
        return self.capability_set or f"{self.id}-tools"


class TerminationSection(BaseModel):
    max_iterations: Optional[int] = Field(default=None, ge=1, le=500)
    allowed_terminators: Optional[List[str]] = None
    approval_token: Optional[str] = None
    # keyword: substring match on the approval token; verdict: "VERDICT: approve" line
    mode: Literal["keyword", "verdict"] = "keyword"


class SelectionSection(BaseModel):
    policy: Literal["round_robin", "router"] = "round_robin"
    model: Optional[str] = None
    default_agent: Optional[str] = None
    instructions: Optional[str] = None


class InterceptorSection(BaseModel):
    audit: bool = True
    approval_rules: Optional[str] = None
    max_result_chars: Optional[int] = Field(default=None, ge=100)


class CrewConfig(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    agents: List[AgentConfig] = Field(min_length=1)
    termination: TerminationSection = Field(default_factory=TerminationSection)
    selection: SelectionSection = Field(default_factory=SelectionSection)
    interceptors: InterceptorSection = Field(default_factory=InterceptorSection)

    @model_validator(mode="after")
    def _check_references(self) -> "CrewConfig":
        ids = [agent.id for agent in self.agents]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate agent ids: {', '.join(duplicates)}")

        participants = {agent.id for agent in self.agents if agent.role == "participant"}
        if not participants:
            raise ValueError("at least one agent must have role 'participant'")

        for agent in self.agents:
            if agent.role == "delegate" and not agent.expose_as_tool:
                raise ValueError(f"delegate agent '{agent.id}' must set expose_as_tool")

        unknown = sorted(set(self.termination.allowed_terminators or []) - participants)
        if unknown:
            raise ValueError(f"allowed_terminators reference unknown participants: {', '.join(unknown)}")

        default_agent = self.selection.default_agent
        if default_agent and default_agent not in participants:
            raise ValueError(f"selection.default_agent '{default_agent}' is not a participant")
        return self

    @property
    def participants(self) -> List[AgentConfig]:
        return [agent for agent in self.agents if agent.role == "participant"]

    @property
    def delegates(self) -> List[AgentConfig]:
        return [agent for agent in self.agents if agent.role == "delegate"]


def load_crew_config(path: Path) -> CrewConfig:
    """Load and validate a crew YAML file.

    Raises:
        ConfigurationError: File missing, invalid YAML or schema violation
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Crew config not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    try:
        return CrewConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid crew config {path}: {e}") from e


__all__ = [
    "AgentConfig",
    "CrewConfig",
    "InterceptorSection",
    "SelectionSection",
    "TerminationSection",
    "load_crew_config",
]
