"""Exception taxonomy for the alerting core.

Validation errors (``InvalidThresholdError``, ``ValidationError``) and
``EvaluationError`` propagate to callers.  ``ChannelDeliveryError`` is raised
by channels and absorbed by the dispatcher.  ``AlertNotFoundError`` exists for
lookup helpers; store operations report "not found" as ``False``/``None``.
"""

from __future__ import annotations


class VigilError(Exception):
    """Base class for all Vigil errors."""


class ValidationError(VigilError):
    """Caller-supplied arguments are malformed."""


class InvalidThresholdError(ValidationError):
    """A threshold update contains unknown keys or out-of-range values.

    Args:
        errors: Mapping of offending key to a human-readable reason.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{key}: {reason}" for key, reason in sorted(self.errors.items()))
        super().__init__(f"Invalid threshold update: {detail}")


class EvaluationError(VigilError):
    """Unexpected input to the evaluator (unknown metric, non-numeric value)."""


class AlertNotFoundError(VigilError):
    """No alert matches the given identifier."""

    def __init__(self, identifier: int | str) -> None:
        super().__init__(f"Alert not found: {identifier!r}")
        self.identifier = identifier


class ChannelDeliveryError(VigilError):
    """A single channel failed to deliver an alert."""

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"{channel}: {reason}")
        self.channel = channel
        self.reason = reason
