"""
Tests for execution queue construction.
"""

from flowcore.runtime.queue import (
    ExecutionQueue,
    build_chain_from,
    build_execution_queue,
    build_step_map,
)
from flowcore.schemas import AgentFlow


def make_flow(steps, entry_point=None):
    return AgentFlow.model_validate(
        {
            "entryPoint": entry_point,
            "steps": [{"type": "transform", **step} for step in steps],
        }
    )


class TestExecutionQueue:
    """Tests for ExecutionQueue."""

    def test_items_appended_while_iterating_are_visited(self):
        queue = ExecutionQueue(["a", "b"])
        seen = []

        for step_id in queue:
            seen.append(step_id)
            if step_id == "a":
                queue.extend_tail(["c", "d"])

        assert seen == ["a", "b", "c", "d"]

    def test_pending(self):
        queue = ExecutionQueue(["a", "b", "c"])
        iterator = iter(queue)
        next(iterator)

        assert queue.pending() == ["b", "c"]
        queue.enqueue("z")
        assert queue.pending() == ["b", "c", "z"]
        assert len(queue) == 4


class TestStepMap:
    """Tests for build_step_map()."""

    def test_last_definition_wins(self):
        """Duplicate IDs resolve to the last step with that ID."""
        flow = make_flow([{"id": "a", "config": {"n": 1}}, {"id": "a", "config": {"n": 2}}])

        step_map = build_step_map(flow)

        assert step_map["a"].config == {"n": 2}


class TestBuildQueue:
    """Tests for build_execution_queue() and build_chain_from()."""

    def test_no_entry_point_uses_array_order(self):
        """Without an entry point next pointers are ignored."""
        flow = make_flow([{"id": "a", "next": "c"}, {"id": "b"}, {"id": "c"}])

        queue = build_execution_queue(flow, build_step_map(flow))

        assert queue.pending() == ["a", "b", "c"]

    def test_entry_point_follows_next(self):
        flow = make_flow(
            [{"id": "a", "next": "c"}, {"id": "b"}, {"id": "c"}],
            entry_point="a",
        )

        queue = build_execution_queue(flow, build_step_map(flow))

        assert queue.pending() == ["a", "c"]

    def test_missing_next_falls_through_to_array_order(self):
        flow = make_flow([{"id": "a"}, {"id": "b"}, {"id": "c"}], entry_point="b")

        queue = build_execution_queue(flow, build_step_map(flow))

        assert queue.pending() == ["b", "c"]

    def test_list_next_fans_out_one_level(self):
        """List targets are queued but not followed further."""
        flow = make_flow(
            [
                {"id": "a", "next": ["b", "c"]},
                {"id": "b", "next": "d"},
                {"id": "c"},
                {"id": "d"},
            ],
            entry_point="a",
        )

        queue = build_execution_queue(flow, build_step_map(flow))

        assert queue.pending() == ["a", "b", "c"]

    def test_cycle_is_broken(self):
        flow = make_flow([{"id": "a", "next": "b"}, {"id": "b", "next": "a"}], entry_point="a")

        assert build_execution_queue(flow, build_step_map(flow)).pending() == ["a", "b"]

    def test_unknown_entry_point_uses_array_order(self):
        flow = make_flow([{"id": "a"}, {"id": "b"}], entry_point="zzz")

        assert build_execution_queue(flow, build_step_map(flow)).pending() == ["a", "b"]

    def test_chain_ends_at_missing_step(self):
        """A next pointer to a missing step is kept for the engine to report."""
        flow = make_flow([{"id": "a", "next": "ghost"}, {"id": "b"}])

        chain = build_chain_from("a", flow, build_step_map(flow))

        assert chain == ["a", "ghost"]

    def test_mapping_next_treated_as_absent(self):
        """Mapping-form next falls through to array order."""
        flow = make_flow([{"id": "a", "next": {"yes": "c"}}, {"id": "b"}, {"id": "c"}], entry_point="a")

        assert build_execution_queue(flow, build_step_map(flow)).pending() == ["a", "b", "c"]
