"""Tests for the small domain value types: gates, outcomes, settings, state, clock."""

from datetime import datetime, timezone

import pytest

from stateflow_kernel.domain.action import ActionOutcome, CallableAction, ExecutionSignal
from stateflow_kernel.domain.clock import DeterministicClock
from stateflow_kernel.domain.configuration import (
    CallableConfigurationProvider,
    Configuration,
    ConfigurationProvider,
    as_provider,
)
from stateflow_kernel.domain.gate import CallableGate, GateResult, identity_of
from stateflow_kernel.domain.lock import LockSettings, LockState, LockStrategy
from stateflow_kernel.domain.state import MappingState, MappingStateFactory, State

from tests.helpers import AlwaysAllow, NoOp


class TestGateResult:
    def test_allow_neither_stops_nor_skips(self):
        assert not GateResult.ALLOW.should_stop_transition()
        assert not GateResult.ALLOW.should_skip_action()

    @pytest.mark.parametrize("result", [GateResult.DENY, GateResult.SKIP_IDEMPOTENT])
    def test_non_allow_stops_and_skips(self, result):
        assert result.should_stop_transition()
        assert result.should_skip_action()

    def test_idempotent_skip_is_distinct(self):
        assert GateResult.SKIP_IDEMPOTENT.is_idempotent_skip
        assert not GateResult.DENY.is_idempotent_skip
        assert GateResult.SKIP_IDEMPOTENT != GateResult.DENY


class TestCallableComponents:
    def test_bool_predicate_maps_to_results(self):
        state = MappingState({"paid": True})
        allow = CallableGate("is_paid", lambda s, d: s["paid"])
        deny = CallableGate("is_unpaid", lambda s, d: not s["paid"], message="unpaid")

        assert allow.evaluate(state, {}) is GateResult.ALLOW
        assert deny.evaluate(state, {}) is GateResult.DENY
        assert deny.message() == "unpaid"

    def test_gate_result_passthrough(self):
        gate = CallableGate("done", lambda s, d: GateResult.SKIP_IDEMPOTENT)
        assert gate.evaluate(MappingState({}), {}) is GateResult.SKIP_IDEMPOTENT

    def test_identity_prefers_attribute(self):
        assert identity_of(CallableGate("is_paid", lambda s, d: True)) == "is_paid"
        assert identity_of(AlwaysAllow()) == "AlwaysAllow"
        assert identity_of(NoOp()) == "NoOp"

    def test_callable_action_with_guard(self):
        guard = CallableGate("never", lambda s, d: False)
        action = CallableAction("notify", lambda s, d, c: ActionOutcome.stop(metadata=1), guard)

        assert action.guard_gate() is guard
        outcome = action.execute(MappingState({}), {}, None)
        assert outcome.signal is ExecutionSignal.STOP
        assert outcome.metadata == 1


class TestActionOutcome:
    def test_factories(self):
        state = MappingState({"a": 1})
        assert ActionOutcome.continue_() == ActionOutcome(ExecutionSignal.CONTINUE)
        assert ActionOutcome.pause(metadata={"job_id": 42}).metadata == {"job_id": 42}
        assert ActionOutcome.stop(state).replacement_state is state

    def test_is_frozen(self):
        outcome = ActionOutcome.continue_()
        with pytest.raises(AttributeError):
            outcome.signal = ExecutionSignal.STOP


class TestLockSettings:
    def test_defaults(self):
        settings = LockSettings()
        assert settings.strategy is LockStrategy.FAIL_FAST
        assert settings.ttl_seconds == 300

    def test_strategy_coerced_from_string(self):
        assert LockSettings(strategy="wait").strategy is LockStrategy.WAIT

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"ttl_seconds": 0},
            {"wait_timeout_seconds": -1},
            {"poll_interval_seconds": 0},
            {"strategy": "sometimes"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            LockSettings(**kwargs)

    def test_empty_lock_state(self):
        lock = LockState()
        assert not lock.is_locked()
        assert not lock.is_held()


class TestMappingState:
    def test_with_changes_returns_new_state(self):
        state = MappingState({"status": "draft", "id": 1})
        changed = state.with_changes({"status": "paid"})

        assert state.to_mapping() == {"status": "draft", "id": 1}
        assert changed.to_mapping() == {"status": "paid", "id": 1}
        assert changed is not state

    def test_source_mapping_copied(self):
        source = {"status": "draft"}
        state = MappingState(source)
        source["status"] = "mutated"
        assert state["status"] == "draft"

    def test_equality_and_protocol(self):
        state = MappingStateFactory().from_mapping({"a": 1})
        assert state == MappingState({"a": 1})
        assert isinstance(state, State)
        assert state.get("missing", "x") == "x"


class TestConfiguration:
    def test_sequences_frozen_to_tuples(self):
        actions = [NoOp()]
        configuration = Configuration(transition_gates=[AlwaysAllow()], actions=actions)
        actions.append(NoOp())

        assert len(configuration.actions) == 1
        assert configuration.action_identities == ("NoOp",)

    def test_as_provider_accepts_callable(self):
        configuration = Configuration()
        provider = as_provider(lambda s, d: configuration)

        assert isinstance(provider, CallableConfigurationProvider)
        assert isinstance(provider, ConfigurationProvider)
        assert provider.provide(MappingState({}), {}) is configuration

    def test_as_provider_rejects_garbage(self):
        with pytest.raises(TypeError):
            as_provider(42)


class TestDeterministicClock:
    def test_sleep_advances_virtual_time(self):
        clock = DeterministicClock(datetime(2024, 6, 1, tzinfo=timezone.utc))
        clock.sleep(1.5)
        clock.sleep(0.5)

        assert clock.sleeps == [1.5, 0.5]
        assert clock.now_utc() == datetime(2024, 6, 1, 0, 0, 2, tzinfo=timezone.utc)

    def test_negative_advance_rejected(self):
        with pytest.raises(ValueError):
            DeterministicClock().advance(-1)

    def test_tick(self):
        clock = DeterministicClock()
        start = clock.now()
        assert (clock.tick() - start).total_seconds() == 1
