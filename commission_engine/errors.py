"""
Error taxonomy for the commission engine.

Validation and policy failures carry the complete list of violated rules so
callers can surface all of them at once.
"""


class EngineError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(EngineError, ValueError):
    """Malformed or out-of-range input. Always recoverable by the caller."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class PolicyViolation(EngineError):
    """An edit or transition not allowed by the entity's current state."""

    def __init__(self, violations: list[str] | str):
        if isinstance(violations, str):
            violations = [violations]
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class PermissionDenied(EngineError):
    """The caller's role lacks the capability for the requested action."""


class PreconditionFailure(EngineError):
    """Calculation invoked with data that never went through validation."""


class NotFound(EngineError, LookupError):
    """Referenced record is absent from the store."""


class ConstraintViolation(EngineError):
    """The store refused a write (duplicate id, missing reference, ...)."""


class StoreError(EngineError):
    """Any other store failure."""
