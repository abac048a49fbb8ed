"""Tests for crew.yaml loading and runtime assembly."""

from pathlib import Path

import pytest
import yaml
from fakes import ScriptedBackend, call, tool_calls
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from agentcrew.agents import ChatModelBackend
from agentcrew.config import ModelSettings, ObservabilitySettings, Settings
from agentcrew.errors import ConfigurationError, UnknownTool
from agentcrew.interceptors import ApprovalInterceptor, AuditInterceptor, ResultTruncationInterceptor
from agentcrew.orchestration.selection import RoundRobinSelection, RouterSelection
from agentcrew.orchestration.termination import VerdictPredicate
from agentcrew.runtime import build_application, build_backend_factory, build_chat_model, build_session
from agentcrew.runtime.app import build_interceptors
from agentcrew.runtime.crew_config import InterceptorSection, load_crew_config
from agentcrew.tools.registry import Tool, ToolRegistry

CONFIG_DIR = Path(__file__).parent.parent.parent / "config"

GITHUB_TOOLS = [
    "get_issue", "list_issues", "get_file_contents", "create_branch",
    "create_or_update_file", "list_branches", "create_pull_request", "create_pull_request_review",
]


def _write(tmp_path, data, name="crew.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


@pytest.fixture
def settings(orchestration_settings):
    return Settings(
        orchestration=orchestration_settings,
        observability=ObservabilitySettings(log_result_max_length=200),
    )


@pytest.fixture
def github_tools():
    return ToolRegistry.register([Tool.native(name, f"GitHub {name}", lambda args: "ok") for name in GITHUB_TOOLS])


class TestCrewConfig:
    def test_bundled_crews_load(self):
        review = load_crew_config(CONFIG_DIR / "crew.yaml")
        github = load_crew_config(CONFIG_DIR / "github_team.yaml")

        assert [a.id for a in review.participants] == ["ArtDirector", "CopyWriter"]
        assert review.termination.allowed_terminators == ["ArtDirector"]
        assert [a.id for a in github.participants] == ["GitHubOrchestrator"]
        assert {a.id for a in github.delegates} == {"IssueReaderAgent", "CodeWriterAgent", "PullRequestAgent"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_crew_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("agents: [", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_crew_config(path)

    @pytest.mark.parametrize("data, message", [
        ({"name": "x", "agents": [{"id": "A"}, {"id": "A"}]}, "duplicate agent ids"),
        ({"name": "x", "agents": [{"id": "A", "role": "delegate", "expose_as_tool": True}]}, "participant"),
        ({"name": "x", "agents": [{"id": "A"}, {"id": "B", "role": "delegate"}]}, "expose_as_tool"),
        ({"name": "x", "agents": [{"id": "A"}], "termination": {"allowed_terminators": ["Z"]}}, "unknown participants"),
        ({"name": "x", "agents": [{"id": "A"}], "selection": {"default_agent": "Z"}}, "not a participant"),
        ({"name": "x", "agents": [{"id": "A"}], "termination": {"max_iterations": 0}}, "max_iterations"),
    ])
    def test_schema_errors(self, tmp_path, data, message):
        with pytest.raises(ConfigurationError, match=message):
            load_crew_config(_write(tmp_path, data))

    def test_capability_set_name_default(self, tmp_path):
        crew = load_crew_config(_write(tmp_path, {"name": "x", "agents": [{"id": "A"}]}))
        assert crew.agents[0].capability_set_name == "A-tools"


class TestBuildSession:
    def test_github_team(self, github_tools, settings):
        crew = load_crew_config(CONFIG_DIR / "github_team.yaml")
        backends = {}

        def factory(model_id):
            return backends.setdefault(model_id, ScriptedBackend())

        session = build_session(crew, github_tools, factory, settings=settings, base_dir=CONFIG_DIR)

        orchestrator = session.agents[0]
        assert orchestrator.capabilities.name == "orchestrator"
        assert orchestrator.capabilities.names == {
            "call_IssueReaderAgent", "call_CodeWriterAgent", "call_PullRequestAgent",
        }
        assert session.get_agent("IssueReaderAgent").capabilities.names == {"get_issue", "list_issues"}
        assert session.get_agent("PullRequestAgent").capabilities.names == {
            "create_pull_request", "create_pull_request_review",
        }
        assert session.termination_state.allowed_terminators == frozenset()
        # The shared registry is not extended in place
        assert "call_IssueReaderAgent" not in github_tools

    def test_unknown_tool_fails(self, github_tools, settings, tmp_path):
        crew = load_crew_config(_write(tmp_path, {"name": "x", "agents": [{"id": "A", "tools": ["delete_repo"]}]}))

        with pytest.raises(UnknownTool):
            build_session(crew, github_tools, lambda model_id: ScriptedBackend(), settings=settings)

    def test_termination_and_selection_options(self, github_tools, settings, tmp_path):
        crew = load_crew_config(_write(tmp_path, {
            "name": "x",
            "agents": [{"id": "A"}, {"id": "B"}],
            "termination": {"max_iterations": 7, "mode": "verdict"},
            "selection": {"policy": "router", "default_agent": "B", "model": "gpt-4o-mini"},
        }))
        requested = []

        def factory(model_id):
            requested.append(model_id)
            return ScriptedBackend()

        session = build_session(crew, github_tools, factory, settings=settings)

        assert isinstance(session._selection, RouterSelection)
        assert session._selection.default_agent_id == "B"
        assert isinstance(session._termination.predicate, VerdictPredicate)
        assert session._termination.max_iterations == 7
        assert requested == [None, None, "gpt-4o-mini"]

    def test_defaults(self, github_tools, settings, tmp_path):
        crew = load_crew_config(_write(tmp_path, {"name": "x", "agents": [{"id": "A"}]}))

        session = build_session(crew, github_tools, lambda model_id: ScriptedBackend(), settings=settings)

        assert isinstance(session._selection, RoundRobinSelection)
        assert session._termination.max_iterations == settings.orchestration.max_iterations
        assert session._dispatcher.log_result_max_length == 200

    def test_interceptor_stack(self):
        interceptors = build_interceptors(
            InterceptorSection(audit=True, approval_rules="approval_rules.yaml", max_result_chars=500),
            base_dir=CONFIG_DIR,
        )

        assert [type(i) for i in interceptors] == [AuditInterceptor, ApprovalInterceptor, ResultTruncationInterceptor]
        assert interceptors[1].checker.check("create_pull_request", {"title": "x"}).needs_approval

    @pytest.mark.asyncio
    async def test_delegation_through_built_session(self, github_tools, settings):
        """编排者通过 call_<id> 工具委派给只拥有自己工具的 agent"""
        crew = load_crew_config(CONFIG_DIR / "github_team.yaml")
        scripts = {
            "GitHubOrchestrator": [
                tool_calls(call("call_IssueReaderAgent", task="Summarise issue 1")),
                "Issue 1 is a crash; next I will create a branch.",
            ],
            "IssueReaderAgent": [tool_calls(call("get_issue", issue_number=1)), "Crash on start."],
        }

        def factory(model_id):
            return RoutingBackend(scripts)

        session = build_session(crew, github_tools, factory, settings=settings, base_dir=CONFIG_DIR)
        session.submit_user_message("Look at issue 1")
        await session.run_until_complete()

        assert session.is_complete
        tool_message = session.history[1]
        assert tool_message.tool_name == "call_IssueReaderAgent"
        assert tool_message.content == "Crash on start."
        # Delegate's own messages never enter the shared history
        assert {m.author for m in session.history} == {"user", "GitHubOrchestrator"}


class RoutingBackend:
    """Shared backend that answers from a per-agent script."""

    def __init__(self, scripts):
        self.scripts = scripts

    async def generate(self, request):
        script = self.scripts[request.agent_id]
        item = script.pop(0) if script else "ok"
        return await ScriptedBackend([item]).generate(request)


@pytest.mark.asyncio
async def test_build_application_with_static_tools(tmp_path, settings):
    crew_path = _write(tmp_path, {
        "name": "solo",
        "agents": [{"id": "Solo", "tools": ["echo"]}],
        "termination": {"max_iterations": 1},
    })
    app = await build_application(
        crew_path,
        settings=settings,
        backend_factory=lambda model_id: ScriptedBackend(["hello"]),
        extra_tools=[Tool.native("echo", "Echo", lambda args: args)],
    )

    session = app.new_session(session_id="s1")
    session.submit_user_message("hi")
    messages = await session.run_until_complete()

    assert app.base_dir == tmp_path
    assert session.session_id == "s1"
    assert [m.content for m in messages] == ["hello"]
    await app.close()


@pytest.mark.asyncio
async def test_build_application_loads_mcp_tools_lazily(tmp_path, settings):
    crew_path = _write(tmp_path, {"name": "mcp", "agents": [{"id": "A", "tools": ["mcp_echo"]}]})
    mcp_path = _write(tmp_path, {
        "servers": {"test": {"command": "python", "args": ["server.py"], "tools": {"echo": {"alias": "mcp_echo"}}}},
    }, name="mcp.yaml")

    app = await build_application(crew_path, mcp_path, settings=settings,
                                  backend_factory=lambda model_id: ScriptedBackend())

    assert "mcp_echo" in app.registry
    assert app.mcp_manager.list_started_servers() == []
    await app.close()


class TestModelResolver:
    def test_openai_compatible(self):
        settings = ModelSettings(model_id="gpt-4o-mini", api_key="sk-test", azure_endpoint=None,
                                 base_url="https://example.invalid/v1")

        model = build_chat_model(settings)

        assert isinstance(model, ChatOpenAI)
        assert model.model_name == "gpt-4o-mini"

    def test_azure_takes_precedence(self):
        settings = ModelSettings(model_id="gpt-4o", azure_endpoint="https://example.openai.azure.com",
                                 azure_api_key="azure-key", api_key=None)

        assert isinstance(build_chat_model(settings), AzureChatOpenAI)

    def test_missing_key(self):
        settings = ModelSettings(model_id="gpt-4o", api_key=None, azure_endpoint=None)

        with pytest.raises(ConfigurationError) as exc_info:
            build_chat_model(settings)
        assert "MODEL_API_KEY" in exc_info.value.user_message

    def test_backend_factory_caches_per_model(self):
        factory = build_backend_factory(ModelSettings(model_id="gpt-4o", api_key="sk-test", azure_endpoint=None))

        default = factory(None)

        assert isinstance(default, ChatModelBackend)
        assert factory("gpt-4o") is default
        assert factory("gpt-4o-mini") is not default
