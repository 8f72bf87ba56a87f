"""
Tests for the ScopeEnforcer.

Tests cover:
- Model and tool whitelists
- Token budget (projected and post-step)
- Time budget with an injected clock
- Pre-step check ordering
- Remaining budget reporting
"""

import math

from flowcore.runtime.context import TokenUsage
from flowcore.runtime.scopes import ScopeEnforcer, ViolationType
from flowcore.schemas import AgentScopes

from conftest import FakeClock, write_output


class TestWhitelists:
    """Tests for model and tool whitelists."""

    def test_empty_model_list_allows_all(self):
        enforcer = ScopeEnforcer(AgentScopes(allowed_models=[]))

        assert enforcer.check_model("anything") is None

    def test_model_not_allowed(self):
        """Models outside the list are rejected with the list in the message."""
        enforcer = ScopeEnforcer(AgentScopes(allowed_models=["m1", "m3"]))

        violation = enforcer.check_model("m2")

        assert violation is not None
        assert violation.type is ViolationType.MODEL_NOT_ALLOWED
        assert violation.message == 'Model "m2" is not in the allowed list: [m1, m3]'
        assert violation.detail["model"] == "m2"
        assert enforcer.check_model("m1") is None

    def test_tool_not_allowed(self):
        enforcer = ScopeEnforcer(AgentScopes(allowed_tools=["search"]))

        violation = enforcer.check_tool("delete_everything")

        assert violation.type is ViolationType.TOOL_NOT_ALLOWED
        assert 'Tool "delete_everything"' in violation.message
        assert enforcer.check_tool("search") is None

    def test_sub_agents(self):
        """Sub-agent creation follows the scope flag."""
        assert ScopeEnforcer(AgentScopes()).check_sub_agent().type is ViolationType.SUB_AGENT_DENIED
        assert ScopeEnforcer(AgentScopes(can_create_sub_agents=True)).check_sub_agent() is None

    def test_violation_to_dict(self):
        violation = ScopeEnforcer(AgentScopes(allowed_models=["m1"])).check_model("m2")

        data = violation.to_dict()

        assert data["type"] == "model_not_allowed"
        assert data["detail"]["allowed"] == ["m1"]


class TestTokenBudget:
    """Tests for token checks."""

    def test_projected_usage_within_limit(self, bus):
        """Exactly reaching the limit is allowed."""
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=100))
        write_output(bus, "a", 1, usage=TokenUsage(total=60))

        assert enforcer.check_tokens(bus, 40) is None

    def test_projected_usage_over_limit(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=100))
        write_output(bus, "a", 1, usage=TokenUsage(total=60))

        violation = enforcer.check_tokens(bus, 41)

        assert violation.type is ViolationType.TOKEN_LIMIT_EXCEEDED
        assert violation.message == "Token limit exceeded: 101 > 100 (current: 60, additional: 41)"

    def test_zero_limit_is_unlimited(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=0))
        write_output(bus, "a", 1, usage=TokenUsage(total=10**9))

        assert enforcer.check_tokens(bus, 10**9) is None
        assert enforcer.post_step_check(bus) is None

    def test_post_step_check(self, bus):
        """Post-step check is strictly greater-than."""
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=100))
        write_output(bus, "a", 1, usage=TokenUsage(total=100))

        assert enforcer.post_step_check(bus) is None

        write_output(bus, "b", 2, usage=TokenUsage(total=1))
        violation = enforcer.post_step_check(bus)

        assert violation.type is ViolationType.TOKEN_LIMIT_EXCEEDED
        assert violation.message == "Token limit exceeded after step: 101 > 100"


class TestTimeBudget:
    """Tests for time checks with a fake clock."""

    def test_within_limit(self):
        clock = FakeClock()
        enforcer = ScopeEnforcer(AgentScopes(max_execution_time_ms=1000), clock=clock)
        clock.advance(0.5)

        assert enforcer.check_time() is None
        assert enforcer.get_elapsed_ms() == 500

    def test_over_limit(self):
        clock = FakeClock()
        enforcer = ScopeEnforcer(AgentScopes(max_execution_time_ms=1000), clock=clock)
        clock.advance(2)

        violation = enforcer.check_time()

        assert violation.type is ViolationType.TIME_LIMIT_EXCEEDED
        assert violation.message == "Execution time exceeded: 2000ms > 1000ms"

    def test_zero_limit_is_unlimited(self):
        clock = FakeClock()
        enforcer = ScopeEnforcer(AgentScopes(max_execution_time_ms=0), clock=clock)
        clock.advance(10_000)

        assert enforcer.check_time() is None


class TestPreStepCheck:
    """Tests for the combined pre-step check."""

    def test_time_checked_before_model(self, bus):
        """An expired run reports time even when the model is also wrong."""
        clock = FakeClock()
        enforcer = ScopeEnforcer(
            AgentScopes(allowed_models=["m1"], max_execution_time_ms=100),
            clock=clock,
        )
        clock.advance(1)

        violation = enforcer.pre_step_check(bus, model="m2")

        assert violation.type is ViolationType.TIME_LIMIT_EXCEEDED

    def test_model_checked_before_tools(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(allowed_models=["m1"], allowed_tools=["t1"]))

        violation = enforcer.pre_step_check(bus, model="m2", tools=["t2"])

        assert violation.type is ViolationType.MODEL_NOT_ALLOWED

    def test_first_bad_tool_reported(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(allowed_tools=["t1"]))

        violation = enforcer.pre_step_check(bus, tools=["t1", "t2", "t3"])

        assert violation.detail["tool"] == "t2"

    def test_tokens_not_prechecked(self, bus):
        """A run already over its token budget passes the pre-step check."""
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=10))
        write_output(bus, "a", 1, usage=TokenUsage(total=50))

        assert enforcer.pre_step_check(bus) is None

    def test_all_clear(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(allowed_models=["m1"], allowed_tools=["t1"]))

        assert enforcer.pre_step_check(bus, model="m1", tools=["t1"]) is None


class TestRemainingBudget:
    """Tests for remaining time and tokens."""

    def test_remaining_time(self):
        clock = FakeClock()
        enforcer = ScopeEnforcer(AgentScopes(max_execution_time_ms=1000), clock=clock)
        clock.advance(0.25)

        assert enforcer.get_remaining_time_ms() == 750

        clock.advance(5)
        assert enforcer.get_remaining_time_ms() == 0

    def test_remaining_tokens(self, bus):
        enforcer = ScopeEnforcer(AgentScopes(max_total_tokens=100))
        write_output(bus, "a", 1, usage=TokenUsage(total=30))

        assert enforcer.get_remaining_tokens(bus) == 70

    def test_unlimited_is_infinite(self, bus):
        enforcer = ScopeEnforcer(AgentScopes.unlimited())

        assert enforcer.get_remaining_time_ms() == math.inf
        assert enforcer.get_remaining_tokens(bus) == math.inf
