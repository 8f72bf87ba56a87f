"""
Tests for the executor registry.
"""

import pytest

from flowcore.executors import (
    AgentExecutor,
    ExecutorRegistry,
    ExecutorRegistryError,
    StepResult,
    TransformExecutor,
    builtin_executors,
    get_executor,
    get_executor_registry,
    register_executor,
    reset_executor_registry,
)

# =============================================================================
# Test Fixtures
# =============================================================================


class EchoExecutor(AgentExecutor):
    type = "echo"

    async def execute(self, step, bus, enforcer, deps) -> StepResult:
        return StepResult(output=step.config.get("text"))


class UntypedExecutor(AgentExecutor):
    async def execute(self, step, bus, enforcer, deps) -> StepResult:
        return StepResult()


# =============================================================================
# ExecutorRegistry Tests
# =============================================================================


class TestExecutorRegistry:
    """Tests for ExecutorRegistry."""

    def test_builtins(self):
        """The six built-in step types are registered."""
        registry = ExecutorRegistry(builtin_executors())

        assert registry.types() == ["llm", "rag", "deterministic", "tool", "router", "transform"]
        assert len(registry) == 6
        assert isinstance(registry.get("transform"), TransformExecutor)

    def test_unknown_type(self):
        assert ExecutorRegistry().get("unknown") is None

    def test_register_custom(self):
        registry = ExecutorRegistry()
        registry.register(EchoExecutor())

        assert "echo" in registry

    def test_register_under_explicit_type(self):
        registry = ExecutorRegistry()
        registry.register(EchoExecutor(), "shout")

        assert "shout" in registry
        assert "echo" not in registry

    def test_replace_existing(self):
        """Registering an existing type replaces it."""
        registry = ExecutorRegistry(builtin_executors())
        custom = EchoExecutor()

        registry.register(custom, "transform")

        assert registry.get("transform") is custom

    def test_untyped_executor_rejected(self):
        with pytest.raises(ExecutorRegistryError, match="must declare a step type"):
            ExecutorRegistry().register(UntypedExecutor())

    def test_unregister(self):
        registry = ExecutorRegistry(builtin_executors())

        assert registry.unregister("rag") is True
        assert registry.unregister("rag") is False
        assert "rag" not in registry


class TestSealing:
    """Tests for sealed registries."""

    def test_sealed_registry_rejects_changes(self):
        registry = ExecutorRegistry(builtin_executors())
        registry.seal()

        with pytest.raises(ExecutorRegistryError, match="sealed"):
            registry.register(EchoExecutor())
        with pytest.raises(ExecutorRegistryError, match="sealed"):
            registry.unregister("llm")

    def test_sealed_registry_still_resolves(self):
        registry = ExecutorRegistry(builtin_executors())
        registry.seal()

        assert registry.sealed
        assert registry.get("llm") is not None
        assert "sealed=True" in repr(registry)


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    def test_lazy_builtins(self):
        assert get_executor("router") is not None

    def test_register_executor(self):
        register_executor(EchoExecutor())

        assert isinstance(get_executor("echo"), EchoExecutor)

    def test_reset(self):
        register_executor(EchoExecutor())
        first = get_executor_registry()

        reset_executor_registry()

        assert get_executor_registry() is not first
        assert get_executor("echo") is None
