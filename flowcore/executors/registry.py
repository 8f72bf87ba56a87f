"""
Executor Registry.

Maps step type keys to AgentExecutor instances. The engine dispatches
every step through a registry, so new step types can be added without
touching the engine.

Design Principle:
    Executors are registered at startup and not changed while runs are in
    flight. ``seal()`` makes that explicit: once sealed, registration and
    removal raise ExecutorRegistryError.

Usage:
    registry = get_executor_registry()        # pre-populated with built-ins
    registry.register(MyExecutor())           # custom step type
    registry.seal()                           # before serving traffic

    executor = get_executor("llm")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .base import AgentExecutor
from .deterministic import DeterministicExecutor
from .llm import LLMExecutor
from .rag import RAGExecutor
from .router import RouterExecutor
from .tool import ToolExecutor
from .transform import TransformExecutor

logger = logging.getLogger(__name__)


class ExecutorRegistryError(Exception):
    """Error in executor registry operations."""

    pass


def builtin_executors() -> list[AgentExecutor]:
    """Fresh instances of the built-in executors."""
    return [
        LLMExecutor(),
        RAGExecutor(),
        DeterministicExecutor(),
        ToolExecutor(),
        RouterExecutor(),
        TransformExecutor(),
    ]


class ExecutorRegistry:
    """
    Registry of step executors keyed by step type.

    Example:
        registry = ExecutorRegistry(builtin_executors())
        registry.get("transform")   # TransformExecutor
        registry.get("unknown")     # None
    """

    def __init__(self, executors: Iterable[AgentExecutor] = ()):
        self._executors: dict[str, AgentExecutor] = {}
        self._sealed = False
        for executor in executors:
            self.register(executor)

    def register(self, executor: AgentExecutor, step_type: str | None = None) -> None:
        """
        Register an executor.

        Args:
            executor: Executor instance
            step_type: Type key, defaults to ``executor.type``

        Raises:
            ExecutorRegistryError: If the registry is sealed or the type is empty

        Note:
            Registering an existing type replaces it (useful for testing).
        """
        key = step_type or executor.type
        if self._sealed:
            raise ExecutorRegistryError(
                f"Cannot register executor for type '{key}': registry is sealed"
            )
        if not key:
            raise ExecutorRegistryError(f"Executor must declare a step type: {executor!r}")

        if key in self._executors:
            logger.warning(f"[executor_registry] Replacing executor for type: {key}")
        self._executors[key] = executor
        logger.debug(f"[executor_registry] Registered executor: {key}")

    def unregister(self, step_type: str) -> bool:
        """
        Remove an executor.

        Returns:
            True if it was removed, False if the type was not registered

        Raises:
            ExecutorRegistryError: If the registry is sealed
        """
        if self._sealed:
            raise ExecutorRegistryError(
                f"Cannot unregister executor for type '{step_type}': registry is sealed"
            )
        if step_type in self._executors:
            del self._executors[step_type]
            logger.debug(f"[executor_registry] Unregistered executor: {step_type}")
            return True
        return False

    def get(self, step_type: str) -> AgentExecutor | None:
        return self._executors.get(step_type)

    def types(self) -> list[str]:
        """Registered step types in registration order."""
        return list(self._executors)

    def seal(self) -> None:
        """Freeze the registry. Lookups keep working."""
        self._sealed = True
        logger.info(f"[executor_registry] Sealed with types: {self.types()}")

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __contains__(self, step_type: str) -> bool:
        return step_type in self._executors

    def __len__(self) -> int:
        return len(self._executors)

    def __repr__(self) -> str:
        return f"<ExecutorRegistry types={self.types()} sealed={self._sealed}>"


# Global registry instance
_registry: ExecutorRegistry | None = None


def get_executor_registry() -> ExecutorRegistry:
    """
    Get the global executor registry.

    Created with the built-in executors on first access.
    """
    global _registry
    if _registry is None:
        _registry = ExecutorRegistry(builtin_executors())
    return _registry


def get_executor(step_type: str) -> AgentExecutor | None:
    """Look up an executor in the global registry."""
    return get_executor_registry().get(step_type)


def register_executor(executor: AgentExecutor, step_type: str | None = None) -> None:
    """Register an executor in the global registry."""
    get_executor_registry().register(executor, step_type)


def reset_executor_registry() -> None:
    """
    Reset the global executor registry (for testing).

    The next access creates a fresh, unsealed registry.
    """
    global _registry
    _registry = None
