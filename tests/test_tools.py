"""
Tests for tools, the tool registry and the execute_tool capability.
"""

import pytest

from flowcore.executors import ExecutorDependencies
from flowcore.runtime import StepStatus, execute_flow
from flowcore.schemas import AgentScopes, TriggerData
from flowcore.tools import Tool, ToolRegistry, ToolRegistryError, ToolResult, tool_capability

# =============================================================================
# Test Fixtures
# =============================================================================


class LookupOrderTool(Tool):
    """Finds orders in a dict."""

    def __init__(self, orders: dict):
        self.orders = orders
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return "lookup_order"

    @property
    def description(self) -> str:
        return "Find an order by its number"

    @property
    def input_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {"order_number": {"type": "string"}},
            "required": ["order_number"],
        }

    async def execute(self, arguments: dict) -> ToolResult:
        self.calls.append(arguments)
        order = self.orders.get(arguments.get("order_number"))
        if order is None:
            return ToolResult.error("Order not found")
        return ToolResult.success("Order found", structured=order)


class BrokenSchemaTool(LookupOrderTool):
    @property
    def input_schema(self) -> dict:
        return {"type": "string"}


class NamelessTool(LookupOrderTool):
    @property
    def name(self) -> str:
        return ""


@pytest.fixture
def lookup():
    return LookupOrderTool({"A-1": {"status": "shipped"}})


@pytest.fixture
def registry(lookup):
    registry = ToolRegistry()
    registry.register(lookup)
    return registry


# =============================================================================
# ToolResult Tests
# =============================================================================


class TestToolResult:
    """Tests for ToolResult."""

    def test_success_output_prefers_structured(self):
        assert ToolResult.success("done", structured={"id": 1}).output == {"id": 1}
        assert ToolResult.success("done").output == "done"

    def test_error(self):
        result = ToolResult.error("Project not found")

        assert result.is_error
        assert result.to_dict() == {"text": "Project not found", "isError": True}


# =============================================================================
# ToolRegistry Tests
# =============================================================================


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_get(self, registry, lookup):
        assert registry.get("lookup_order") is lookup
        assert "lookup_order" in registry
        assert len(registry) == 1
        assert registry.list_names() == ["lookup_order"]

    def test_duplicate_rejected(self, registry):
        with pytest.raises(ToolRegistryError, match="already registered"):
            registry.register(LookupOrderTool({}))

    def test_invalid_schema_rejected(self):
        with pytest.raises(ToolRegistryError, match="type: 'object'"):
            ToolRegistry().register(BrokenSchemaTool({}))

    def test_nameless_rejected(self):
        with pytest.raises(ToolRegistryError, match="valid name"):
            ToolRegistry().register(NamelessTool({}))

    def test_unregister(self, registry):
        assert registry.unregister("lookup_order") is True
        assert registry.unregister("lookup_order") is False

    def test_to_schemas(self, registry):
        schemas = registry.to_schemas()

        assert schemas[0]["name"] == "lookup_order"
        assert schemas[0]["input_schema"]["type"] == "object"


# =============================================================================
# Capability Tests
# =============================================================================


class TestToolCapability:
    """Tests for tool_capability()."""

    @pytest.mark.asyncio
    async def test_success(self, registry):
        execute_tool = tool_capability(registry)

        result = await execute_tool(tool_name="lookup_order", input={"order_number": "A-1"}, account_id="acc")

        assert result.output == {"status": "shipped"}
        assert result.error is None

    @pytest.mark.asyncio
    async def test_tool_error(self, registry):
        execute_tool = tool_capability(registry)

        result = await execute_tool(tool_name="lookup_order", input={"order_number": "Z"}, account_id="acc")

        assert result.error == "Order not found"
        assert result.output == "Order not found"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        execute_tool = tool_capability(registry)

        result = await execute_tool(tool_name="nope", input={}, account_id="acc")

        assert result.error == "Tool \"nope\" is not registered. Available tools: ['lookup_order']"

    @pytest.mark.asyncio
    async def test_tool_step_end_to_end(self, registry, lookup, capabilities):
        """A tool step runs a registered tool with resolved inputs."""
        deps = ExecutorDependencies(
            call_llm=capabilities.call_llm,
            search_knowledge=capabilities.search_knowledge,
            execute_tool=tool_capability(registry),
            account_id="acc-1",
        )
        flow = {
            "steps": [
                {
                    "id": "find",
                    "type": "tool",
                    "config": {"tool": "lookup_order"},
                    "inputs": {"order_number": "{{ trigger.metadata.order }}"},
                }
            ]
        }
        trigger = TriggerData.manual("where?", metadata={"order": "A-1"})

        result = await execute_flow(flow, AgentScopes(allowed_tools=["lookup_order"]), trigger, deps)

        assert result.success is True
        assert result.output == {"status": "shipped"}
        assert lookup.calls == [{"order_number": "A-1"}]

    @pytest.mark.asyncio
    async def test_tool_step_error_is_traced(self, registry, capabilities):
        deps = ExecutorDependencies(
            call_llm=capabilities.call_llm,
            search_knowledge=capabilities.search_knowledge,
            execute_tool=tool_capability(registry),
            account_id="acc-1",
        )
        flow = {"steps": [{"id": "find", "type": "tool", "config": {"tool": "lookup_order"}}]}

        result = await execute_flow(flow, AgentScopes(), TriggerData.manual("x"), deps)

        assert result.success is False
        assert result.steps[0].status is StepStatus.ERROR
        assert result.steps[0].output == "Order not found"
