"""
Tests for the ContextBus.

Tests cover:
- Append-only writes
- Reads of outputs, trigger and global metadata
- Token and duration aggregation
- The resolution namespace used by templates
- Snapshots
"""

import pytest

from flowcore.runtime.context import ContextBus, ContextEntry, ContextWriteError, TokenUsage
from flowcore.runtime.expressions import resolve_template
from flowcore.schemas import TriggerData

from conftest import write_output


class TestTokenUsage:
    """Tests for TokenUsage arithmetic."""

    def test_addition(self):
        """Usage adds field by field."""
        total = TokenUsage(prompt=1, completion=2, total=3) + TokenUsage(prompt=10, completion=20, total=30)

        assert total == TokenUsage(prompt=11, completion=22, total=33)

    def test_to_dict(self):
        assert TokenUsage(total=5).to_dict() == {"prompt": 0, "completion": 0, "total": 5}


class TestContextBusWrites:
    """Tests for writing to the bus."""

    def test_write_and_read(self, bus):
        """A written entry can be read back."""
        write_output(bus, "greet", "hello")

        entry = bus.read("greet")
        assert entry is not None
        assert entry.output == "hello"
        assert bus.get_output("greet") == "hello"
        assert bus.has_step("greet")

    def test_second_write_raises(self, bus):
        """Writing the same step twice is rejected."""
        write_output(bus, "greet", "hello")

        with pytest.raises(ContextWriteError) as exc_info:
            write_output(bus, "greet", "again")

        assert exc_info.value.step_id == "greet"
        assert "append-only" in str(exc_info.value)
        assert bus.get_output("greet") == "hello"

    def test_unknown_step(self, bus):
        """Reading a step that has not run returns None."""
        assert bus.read("nope") is None
        assert bus.get_output("nope") is None
        assert not bus.has_step("nope")

    def test_completed_steps_in_write_order(self, bus):
        """Step IDs come back in write order."""
        write_output(bus, "b", 1)
        write_output(bus, "a", 2)

        assert bus.completed_steps() == ["b", "a"]
        assert len(bus) == 2

    def test_none_output_is_recorded(self, bus):
        """A step with None output still counts as written."""
        write_output(bus, "empty", None)

        assert bus.has_step("empty")


class TestContextBusAggregates:
    """Tests for usage and duration totals."""

    def test_total_token_usage(self, bus):
        """Usage is summed across entries, missing usage counts as zero."""
        write_output(bus, "a", 1, usage=TokenUsage(prompt=10, completion=5, total=15))
        write_output(bus, "b", 2)
        write_output(bus, "c", 3, usage=TokenUsage(total=100))

        assert bus.total_token_usage() == TokenUsage(prompt=10, completion=5, total=115)

    def test_empty_bus_usage(self, bus):
        assert bus.total_token_usage() == TokenUsage()

    def test_total_elapsed(self, bus):
        """Elapsed time is the sum of step durations."""
        bus.write(ContextEntry(step_id="a", type="llm", output=1, started_at=100, completed_at=150))
        bus.write(ContextEntry(step_id="b", type="llm", output=2, started_at=200, completed_at=225))

        assert bus.total_elapsed_ms() == 75


class TestResolutionContext:
    """Tests for the template namespace."""

    def test_namespace_shape(self, bus):
        """Trigger, context and one key per step."""
        write_output(bus, "intent-classifier", {"intent": "complaint"})

        ctx = bus.to_resolution_context()

        assert ctx["trigger"]["content"] == "Where is my order?"
        assert ctx["trigger"]["conversationId"] == "conv-1"
        assert ctx["context"]["accountId"] == "acc-1"
        assert ctx["intent-classifier"] == {"intent": "complaint"}

    def test_templates_resolve_against_bus(self, bus):
        """Templates read trigger fields and step outputs."""
        write_output(bus, "lookup", {"chunks": [1, 2, 3]})
        ctx = bus.to_resolution_context()

        assert resolve_template("{{ lookup.chunks.length }}", ctx) == 3
        assert resolve_template("From {{ trigger.senderAccountId }}", ctx) == "From acc-sender"
        assert resolve_template("{{ context.agentId }}", ctx) == "agent-1"

    def test_trigger_view_is_read_only(self, bus):
        """The trigger mapping cannot be modified through the namespace."""
        ctx = bus.to_resolution_context()

        with pytest.raises(TypeError):
            ctx["trigger"]["content"] = "changed"

    def test_global_meta_is_copied(self, trigger):
        """Changing the dict passed in does not change the bus."""
        meta = {"accountId": "acc-1"}
        bus = ContextBus(trigger, meta)
        meta["accountId"] = "other"

        assert bus.get_global_meta()["accountId"] == "acc-1"

    def test_get_trigger(self, bus, trigger):
        assert bus.get_trigger() is trigger


class TestSnapshot:
    """Tests for ContextBus.snapshot()."""

    def test_snapshot_contents(self, bus):
        """Snapshots hold plain dicts with camelCase entry keys."""
        write_output(bus, "a", {"x": 1}, usage=TokenUsage(total=4))

        snapshot = bus.snapshot()

        assert snapshot["trigger"]["type"] == "message_received"
        assert snapshot["globalMeta"] == {"accountId": "acc-1", "agentId": "agent-1"}
        assert snapshot["entries"][0]["stepId"] == "a"
        assert snapshot["entries"][0]["tokenUsage"] == {"prompt": 0, "completion": 0, "total": 4}

    def test_manual_trigger(self):
        """A bus without global metadata still resolves."""
        bus = ContextBus(TriggerData.manual("hi"))

        ctx = bus.to_resolution_context()

        assert ctx["trigger"]["type"] == "manual"
        assert dict(ctx["context"]) == {}
