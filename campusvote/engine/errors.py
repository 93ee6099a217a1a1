"""Exception taxonomy for the election rules engine.

Domain validation outcomes (candidacy rule violations, ballot states) are
values, not exceptions. Exceptions are reserved for conditions the caller
must handle distinctly: bad administrative data, corrupted data, and
rejected writes.
"""

from campusvote.engine.models import RuleViolation


class ElectionEngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(ElectionEngineError):
    """Administrative data is malformed (operator problem, not a user mistake)."""


class DataIntegrityError(ElectionEngineError):
    """Stored data violates an invariant the tally depends on."""


class ElectionNotAvailableError(ElectionEngineError):
    """The election no longer accepts participation confirmations."""


class VoterNotEligibleError(ElectionEngineError):
    """The voter may not take part in this election."""


class BallotNotOpenError(ElectionEngineError):
    """A ballot was submitted while the position was not open for this voter."""

    def __init__(self, state: str, message: str | None = None, **details: object) -> None:
        super().__init__(message or f"Ballot is not open: {state}", state=state, **details)
        self.state = state


class CandidacyRejected(ElectionEngineError):
    """A candidacy write was refused by one or more admission rules."""

    def __init__(self, violations: list[RuleViolation] | tuple[RuleViolation, ...]) -> None:
        violations = tuple(violations)
        super().__init__(violations[0].message if violations else "Candidacy rejected")
        self.violations = violations

    @property
    def primary(self) -> RuleViolation | None:
        return self.violations[0] if self.violations else None


class ConcurrentAdmissionError(ElectionEngineError):
    """A concurrent write invalidated the admission snapshot; the caller may retry."""


class InvalidBallotChoiceError(ElectionEngineError):
    """The chosen candidate is not an active candidate of the position."""
