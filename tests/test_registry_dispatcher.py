"""Tests for the agent registry, BaseAgent.invoke() and the dispatcher."""

from __future__ import annotations

import pytest

from conftest import FakeLLM
from src.swiftship.agents.base import AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.dispatcher import AgentDispatcher
from src.swiftship.agents.registry import AgentRegistry, UnknownAgentTypeError
from src.swiftship.agents.router import RouterAgent
from src.swiftship.agents.schemas import AgentResponse, AgentType, Message, parse_agent_type


# ── Helpers ──────────────────────────────────────────────────────────────────


class EchoAgent(BaseAgent):
    """Replies with its own type and the latest user message."""

    def __init__(self, agent_type: AgentType) -> None:
        super().__init__(
            AgentRegistration(agent_type=agent_type, name=f"{agent_type.value} echo", description="echo")
        )
        self.seen: list[AgentContext] = []

    async def execute(self, context: AgentContext) -> AgentResponse:
        self.seen.append(context)
        context.debug("echo_executed", agent=self.agent_type.value)
        return AgentResponse(content=f"{self.agent_type.value}: {context.query}", metadata={"echo": True})


class FailingAgent(BaseAgent):
    def __init__(self) -> None:
        super().__init__(AgentRegistration(agent_type=AgentType.DOCS, name="broken", description="fails"))

    async def execute(self, context: AgentContext) -> AgentResponse:
        raise RuntimeError("boom")


def _registry() -> AgentRegistry:
    registry = AgentRegistry()
    for agent_type in (AgentType.QUOTE, AgentType.DOCS, AgentType.SUPPORT, AgentType.SHIPMENTS):
        registry.register(EchoAgent(agent_type))
    return registry


def _dispatcher(llm: FakeLLM) -> AgentDispatcher:
    registry = _registry()
    return AgentDispatcher(registry, RouterAgent(llm, registry))


def _context(text: str = "hello") -> AgentContext:
    return AgentContext(conversation=[Message(role="user", content=text)])


# ── Agent type parsing ───────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "token, expected",
    [
        ("quote", AgentType.QUOTE),
        ("QUOTE_AGENT", AgentType.QUOTE),
        ("shipments-agent", AgentType.SHIPMENTS),
        (" Docs ", AgentType.DOCS),
        ("billing", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_agent_type(token, expected):
    assert parse_agent_type(token) is expected


# ── Registry ─────────────────────────────────────────────────────────────────


def test_register_and_resolve():
    registry = _registry()

    assert len(registry) == 4
    assert AgentType.QUOTE in registry
    assert registry.resolve("QUOTE_AGENT").agent_type == AgentType.QUOTE
    assert registry.resolve(AgentType.DOCS).agent_type == AgentType.DOCS


def test_duplicate_registration_rejected():
    registry = _registry()
    with pytest.raises(ValueError, match="already registered"):
        registry.register(EchoAgent(AgentType.QUOTE))


@pytest.mark.parametrize("agent_type", ["billing", AgentType.ROUTER, "router"])
def test_resolve_unknown_type_raises(agent_type):
    with pytest.raises(UnknownAgentTypeError):
        _registry().resolve(agent_type)


def test_list_agents_for_routing():
    infos = _registry().list_agents(exclude=(AgentType.QUOTE,))
    assert {info["agent"] for info in infos} == {"DOCS_AGENT", "SUPPORT_AGENT", "SHIPMENTS_AGENT"}


# ── BaseAgent.invoke() ───────────────────────────────────────────────────────


async def test_invoke_attaches_request_debug_logs():
    response = await EchoAgent(AgentType.DOCS).invoke(_context("how?"))

    assert response.content == "docs: how?"
    assert response.debug_logs == ["echo_executed: agent=docs"]


async def test_invoke_reraises_agent_errors():
    with pytest.raises(RuntimeError, match="boom"):
        await FailingAgent().invoke(_context())


async def test_debug_logs_are_per_request():
    agent = EchoAgent(AgentType.SUPPORT)
    first = await agent.invoke(_context("one"))
    second = await agent.invoke(_context("two"))

    assert first.debug_logs == second.debug_logs == ["echo_executed: agent=support"]


# ── Dispatcher ───────────────────────────────────────────────────────────────


async def test_dispatch_explicit_type_skips_router():
    llm = FakeLLM()
    dispatcher = _dispatcher(llm)

    response = await dispatcher.dispatch(_context("price?"), AgentType.QUOTE)

    assert response.content == "quote: price?"
    assert response.metadata == {"echo": True, "agent": "QUOTE_AGENT"}
    assert llm.calls == []


async def test_dispatch_without_type_routes_first():
    llm = FakeLLM(['{"agent": "SHIPMENTS_AGENT", "reason": "tracking question"}'])
    dispatcher = _dispatcher(llm)

    response = await dispatcher.dispatch(_context("Where is shipment 123?"))

    assert response.content == "shipments: Where is shipment 123?"
    assert response.metadata["agent"] == "SHIPMENTS_AGENT"
    assert response.metadata["routing"] == {
        "agent": "shipments",
        "reason": "tracking question",
        "fallback": False,
    }
    assert response.debug_logs[0].startswith("request_routed")


async def test_dispatch_router_fallback_still_answers():
    dispatcher = _dispatcher(FakeLLM(["garbage"]))

    response = await dispatcher.dispatch(_context("???"))

    assert response.content == "support: ???"
    assert response.metadata["routing"]["fallback"] is True


async def test_dispatch_unregistered_type_raises():
    registry = AgentRegistry()
    registry.register(EchoAgent(AgentType.QUOTE))
    dispatcher = AgentDispatcher(registry, RouterAgent(FakeLLM(), registry))

    with pytest.raises(UnknownAgentTypeError):
        await dispatcher.dispatch(_context(), AgentType.DOCS)
