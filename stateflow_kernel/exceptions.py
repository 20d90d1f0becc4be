"""
Typed Exception Hierarchy for the StateFlow kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine need to tell apart "the lock was busy", "the lock
vanished while we were paused" and "the caller did something illegal".
Matching on message text is fragile, so every error has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, log- and API-safe)
  3. Structured DATA stored as attributes

Example:
    try:
        context = engine.transition(order, {"status": "paid"}).run()
    except LockAcquisitionError as e:
        log.info("busy", extra={"lock_key": e.lock_key})
        retry_later()

Gate DENY is NOT an exception. It is a regular terminal outcome (STOPPED)
recorded in the context history.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StateFlowError (base)
    |
    +-- LockError
    |   +-- LockAcquisitionError
    |   +-- LockLostError
    |   +-- LockBackendMissingError
    |
    +-- TransitionError
    |   +-- TransitionStateError
    |   +-- InvalidStatusTransitionError
    |   +-- ConfigurationMismatchError
    |
    +-- ContractViolationError
    |   +-- InvalidGateResultError
    |   +-- InvalidActionOutcomeError
    |   +-- InvalidLockKeyError
    |
    +-- SnapshotError
    |   +-- UnsupportedSnapshotVersionError
    |   +-- SnapshotIntegrityError
    |   +-- CheckpointNotFoundError
    |
    +-- ConfigurationError
        +-- UnknownComponentError
        +-- NoMatchingRuleError
        +-- InvalidDefinitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|-----------------------------------------
Lock            | LOCK_ACQUISITION_FAILED      | FAIL_FAST miss or WAIT timeout
                | LOCK_LOST                    | Paused lock no longer exists on resume
                | LOCK_BACKEND_MISSING         | Locked context resumed without backend
----------------|------------------------------|-----------------------------------------
Transition      | INVALID_TRANSITION_STATE     | Phase call not legal in current status
                | INVALID_STATUS_TRANSITION    | Illegal TransitionStatus change
                | CONFIGURATION_MISMATCH       | Resume config disagrees with history
----------------|------------------------------|-----------------------------------------
Contract        | INVALID_GATE_RESULT          | Gate returned a non-GateResult
                | INVALID_ACTION_OUTCOME       | Action returned a non-ActionOutcome
                | INVALID_LOCK_KEY             | Key provider returned empty/non-string
----------------|------------------------------|-----------------------------------------
Snapshot        | UNSUPPORTED_SNAPSHOT_VERSION | Unknown snapshot schema_version
                | SNAPSHOT_INTEGRITY_FAILED    | snapshot_hash does not match payload
                | CHECKPOINT_NOT_FOUND         | No stored checkpoint for transition id
----------------|------------------------------|-----------------------------------------
Configuration   | UNKNOWN_COMPONENT            | Registry has no gate/action of that name
                | NO_MATCHING_RULE             | No workflow rule matches state + delta
                | INVALID_DEFINITION           | Workflow YAML is structurally invalid
"""


class StateFlowError(Exception):
    """
    Base exception for all StateFlow errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STATEFLOW_ERROR"


# Lock-related exceptions


class LockError(StateFlowError):
    """Base exception for lock-related errors."""

    code: str = "LOCK_ERROR"


class LockAcquisitionError(LockError):
    """
    The transition lock could not be obtained.

    Raised under FAIL_FAST immediately, and under WAIT once the wait
    timeout has elapsed.  No context is produced in a terminal state: the
    attempt simply did not start.
    """

    code: str = "LOCK_ACQUISITION_FAILED"

    def __init__(self, lock_key: str, strategy: str, attempts: int = 1):
        self.lock_key = lock_key
        self.strategy = strategy
        self.attempts = attempts
        super().__init__(
            f"Could not acquire lock {lock_key!r} "
            f"(strategy={strategy}, attempts={attempts})"
        )


class LockLostError(LockError):
    """
    A paused transition's lock no longer exists.

    The context is left PAUSED and unmodified so the caller can decide
    whether to discard it, retry under a new lock, or check out-of-band.
    """

    code: str = "LOCK_LOST"

    def __init__(self, lock_key: str, transition_id: str):
        self.lock_key = lock_key
        self.transition_id = transition_id
        super().__init__(
            f"Lock {lock_key!r} for transition {transition_id} was lost "
            "while paused"
        )


class LockBackendMissingError(LockError):
    """A locked context was resumed by an engine without a lock backend."""

    code: str = "LOCK_BACKEND_MISSING"

    def __init__(self, lock_key: str):
        self.lock_key = lock_key
        super().__init__(
            f"Context holds lock {lock_key!r} but no lock backend is configured"
        )


# Transition-related exceptions


class TransitionError(StateFlowError):
    """Base exception for engine invariant violations."""

    code: str = "TRANSITION_ERROR"


class TransitionStateError(TransitionError):
    """A phase operation was called while the transition is in the wrong state."""

    code: str = "INVALID_TRANSITION_STATE"

    def __init__(self, transition_id: str, status: str, operation: str):
        self.transition_id = transition_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} transition {transition_id} in status {status}"
        )


class InvalidStatusTransitionError(TransitionError):
    """Attempted a TransitionStatus change that the lifecycle forbids."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition: {from_status} -> {to_status}"
        )


class ConfigurationMismatchError(TransitionError):
    """
    The configuration supplied on resume disagrees with recorded history
    or with the action plan recorded when the transition started.

    Resuming against a different action list would replay or skip work,
    so it is refused.
    """

    code: str = "CONFIGURATION_MISMATCH"

    def __init__(self, position: int, expected: str | None, actual: str | None):
        self.position = position
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Action at position {position} was recorded as {expected!r} "
            f"but configuration has {actual!r}"
        )


# Contract violations by user-supplied components


class ContractViolationError(StateFlowError):
    """Base exception for components that break their interface contract."""

    code: str = "CONTRACT_VIOLATION"


class InvalidGateResultError(ContractViolationError):
    """Gate.evaluate returned something other than a GateResult."""

    code: str = "INVALID_GATE_RESULT"

    def __init__(self, gate_identity: str, value_type: str):
        self.gate_identity = gate_identity
        self.value_type = value_type
        super().__init__(
            f"Gate {gate_identity} returned {value_type}, expected GateResult"
        )


class InvalidActionOutcomeError(ContractViolationError):
    """Action.execute returned something other than an ActionOutcome."""

    code: str = "INVALID_ACTION_OUTCOME"

    def __init__(self, action_identity: str, value_type: str):
        self.action_identity = action_identity
        self.value_type = value_type
        super().__init__(
            f"Action {action_identity} returned {value_type}, expected ActionOutcome"
        )


class InvalidLockKeyError(ContractViolationError):
    """Lock key provider returned an empty or non-string key."""

    code: str = "INVALID_LOCK_KEY"

    def __init__(self, value_type: str):
        self.value_type = value_type
        super().__init__(
            f"Lock key provider returned {value_type}, expected non-empty str"
        )


# Snapshot / persistence exceptions


class SnapshotError(StateFlowError):
    """Base exception for snapshot and checkpoint errors."""

    code: str = "SNAPSHOT_ERROR"


class UnsupportedSnapshotVersionError(SnapshotError):
    """Snapshot schema version is not supported."""

    code: str = "UNSUPPORTED_SNAPSHOT_VERSION"

    def __init__(self, schema_version: object, supported: int):
        self.schema_version = schema_version
        self.supported = supported
        super().__init__(
            f"Unsupported snapshot schema version {schema_version!r} "
            f"(supported: {supported})"
        )


class SnapshotIntegrityError(SnapshotError):
    """Snapshot payload does not match its recorded hash."""

    code: str = "SNAPSHOT_INTEGRITY_FAILED"

    def __init__(self, transition_id: str, expected_hash: str, actual_hash: str):
        self.transition_id = transition_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Snapshot for transition {transition_id} failed integrity check: "
            f"expected {expected_hash}, computed {actual_hash}"
        )


class CheckpointNotFoundError(SnapshotError):
    """No checkpoint is stored for the given transition id."""

    code: str = "CHECKPOINT_NOT_FOUND"

    def __init__(self, transition_id: str):
        self.transition_id = transition_id
        super().__init__(f"Checkpoint not found: {transition_id}")


# Configuration exceptions


class ConfigurationError(StateFlowError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class UnknownComponentError(ConfigurationError):
    """The component registry has no gate or action under that name."""

    code: str = "UNKNOWN_COMPONENT"

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name}")


class NoMatchingRuleError(ConfigurationError):
    """No workflow rule matches the given state and delta."""

    code: str = "NO_MATCHING_RULE"

    def __init__(self, workflow: str, delta_fields: list[str]):
        self.workflow = workflow
        self.delta_fields = delta_fields
        super().__init__(
            f"No rule in workflow {workflow!r} matches delta fields {delta_fields}"
        )


class InvalidDefinitionError(ConfigurationError):
    """A workflow definition is structurally invalid."""

    code: str = "INVALID_DEFINITION"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid workflow definition {source}: {reason}")
