"""
Flow Definition Loaders.

Read-only sources of FlowDefinition records, looked up by flow name.

Design Principle:
    Start simple, scale as needed.
    - Development: FileFlowLoader (YAML/JSON files)
    - Testing: MemoryFlowLoader (in-memory)
    - Production: the external agent registry (implement in your project)

The loaders abstract away WHERE definitions come from, so the engine
only ever sees validated models.

Usage:
    loader = FileFlowLoader("flows/")
    definition = await loader.get_flow("support-triage")

    result = await FlowEngine().execute_definition(definition, trigger, deps)

    # Production (implement in your project)
    class RegistryFlowLoader:
        async def get_flow(self, name):
            doc = await self.db.flows.find_one({"name": name})
            return FlowDefinition.model_validate(doc) if doc else None
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from flowcore.schemas import FlowDefinition

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".json", ".yaml", ".yml")


class FlowLoaderError(Exception):
    """Raised when a definition file cannot be read or does not validate."""

    pass


class FlowLoader(Protocol):
    """Protocol for flow definition sources."""

    async def get_flow(self, name: str) -> FlowDefinition | None: ...

    async def list_flows(self) -> list[str]: ...


class FileFlowLoader:
    """
    Loads flow definitions from YAML/JSON files.

    One definition per file, in a flat directory:

    flows/
    ├── support-triage.yaml
    ├── faq.json
    └── escalation.yml

    File Format:
        name: support-triage          # optional, defaults to the file stem
        description: Route support messages
        agentId: agent-42
        scopes:
          allowedModels: [gpt-4o-mini]
          maxTotalTokens: 4000
        flow:
          entryPoint: classify
          steps:
            - id: classify
              type: llm
              ...

    Usage:
        loader = FileFlowLoader("flows/")
        names = await loader.list_flows()
        definition = await loader.get_flow("support-triage")
    """

    def __init__(self, base_dir: str | Path):
        """
        Initialize loader.

        Args:
            base_dir: Directory holding definition files
        """
        self._base_dir = Path(base_dir)

    async def get_flow(self, name: str) -> FlowDefinition | None:
        """
        Get a flow definition by name.

        Returns:
            FlowDefinition, or None if no file matches

        Raises:
            FlowLoaderError: If the file is unreadable or invalid
        """
        for path in self._files():
            if path.stem == name:
                return self._load(path)

        logger.debug(f"[file_flow_loader] No definition named '{name}' in {self._base_dir}")
        return None

    async def list_flows(self) -> list[str]:
        """Names of the definition files, sorted."""
        return sorted({path.stem for path in self._files()})

    async def load_all(self) -> list[FlowDefinition]:
        """Load every definition in the directory."""
        definitions = [self._load(path) for path in self._files()]
        logger.info(f"[file_flow_loader] Loaded {len(definitions)} flows from {self._base_dir}")
        return definitions

    def _files(self) -> list[Path]:
        if not self._base_dir.exists():
            logger.warning(f"[file_flow_loader] Flows directory not found: {self._base_dir}")
            return []
        return sorted(
            path
            for path in self._base_dir.iterdir()
            if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
        )

    def _load(self, path: Path) -> FlowDefinition:
        data = self._read(path)
        if not isinstance(data, dict):
            raise FlowLoaderError(f"{path}: expected a mapping at the top level")
        data.setdefault("name", path.stem)

        try:
            definition = FlowDefinition.model_validate(data)
        except ValidationError as e:
            raise FlowLoaderError(f"{path}: invalid flow definition: {e}") from e

        logger.debug(f"[file_flow_loader] Loaded flow '{definition.name}' from {path}")
        return definition

    def _read(self, path: Path) -> Any:
        try:
            with path.open(encoding="utf-8") as f:
                if path.suffix.lower() == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            logger.error(f"[file_flow_loader] Failed to load {path}: {e}")
            raise FlowLoaderError(f"{path}: {e}") from e


class MemoryFlowLoader:
    """
    In-memory flow loader for testing.

    Usage:
        loader = MemoryFlowLoader()
        loader.add(FlowDefinition(name="faq", flow=AgentFlow(steps=[...])))
        loader.add({"name": "echo", "flow": {"steps": [...]}})

        definition = await loader.get_flow("faq")
    """

    def __init__(self, definitions: list[FlowDefinition] | None = None):
        self._flows: dict[str, FlowDefinition] = {}
        for definition in definitions or []:
            self.add(definition)

    def add(self, definition: FlowDefinition | dict[str, Any]) -> FlowDefinition:
        """
        Add (or replace) a definition.

        Raises:
            FlowLoaderError: If a dict definition does not validate
        """
        if not isinstance(definition, FlowDefinition):
            try:
                definition = FlowDefinition.model_validate(definition)
            except ValidationError as e:
                raise FlowLoaderError(f"Invalid flow definition: {e}") from e
        self._flows[definition.name] = definition
        return definition

    async def get_flow(self, name: str) -> FlowDefinition | None:
        return self._flows.get(name)

    async def list_flows(self) -> list[str]:
        return sorted(self._flows)

    def clear(self) -> None:
        """Clear all definitions."""
        self._flows.clear()
