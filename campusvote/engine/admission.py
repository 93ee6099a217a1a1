"""Candidacy admission rules: duplicates, capacity limits and partylist exclusivity."""

from collections import Counter
from collections.abc import Iterable

from campusvote.engine.eligibility import election_ineligibility_reason
from campusvote.engine.errors import ConfigurationError
from campusvote.engine.models import (
    Candidate,
    CandidateDraft,
    Election,
    ElectionStatus,
    Partylist,
    Position,
    RuleViolation,
    ValidationResult,
    ViolationKind,
    Voter,
)


# ============================================
# CAPACITY ACCOUNTING
# ============================================


def check_position_limits(position: Position) -> None:
    """Raise ConfigurationError when a position's capacity limits are unusable."""
    if position.max_candidates <= 0:
        raise ConfigurationError(
            f"Position {position.name} has a non-positive candidate limit",
            position_id=position.id,
            max_candidates=position.max_candidates,
        )
    if position.max_candidates_per_partylist <= 0:
        raise ConfigurationError(
            f"Position {position.name} has a non-positive per-partylist limit",
            position_id=position.id,
            max_candidates_per_partylist=position.max_candidates_per_partylist,
        )


def _others(
    candidates: Iterable[Candidate], election_id: str, exclude_id: str | None
) -> list[Candidate]:
    """Candidates of the election as they would stand without the record being edited."""
    return [
        c for c in candidates if c.election_id == election_id and c.id != exclude_id
    ]


def partylist_occupancy(
    position_id: str,
    candidates: Iterable[Candidate],
    exclude_id: str | None = None,
) -> dict[str, int]:
    """Count active candidates of a position per partylist key (independents included)."""
    counts = Counter(
        c.partylist_key
        for c in candidates
        if c.position_id == position_id and c.is_active and c.id != exclude_id
    )
    return dict(sorted(counts.items()))


def remaining_capacity(position: Position, candidates: Iterable[Candidate]) -> dict:
    """
    Summarize open candidate slots for a position.

    Returns:
        Dict with the remaining position-wide slots and, per partylist key
        already present, the remaining slots for that partylist.
    """
    check_position_limits(position)
    occupancy = partylist_occupancy(
        position.id, [c for c in candidates if c.election_id == position.election_id]
    )
    used = sum(occupancy.values())
    return {
        "position_id": position.id,
        "max_candidates": position.max_candidates,
        "max_candidates_per_partylist": position.max_candidates_per_partylist,
        "remaining": max(position.max_candidates - used, 0),
        "partylists": {
            key: max(position.max_candidates_per_partylist - count, 0)
            for key, count in occupancy.items()
        },
    }


# ============================================
# VALIDATION
# ============================================


def validate(
    draft: CandidateDraft,
    election: Election,
    position: Position,
    existing_candidates: Iterable[Candidate],
    voter: Voter | None = None,
    partylists: Iterable[Partylist] | None = None,
    ballot_count: int = 0,
) -> ValidationResult:
    """
    Validate a candidate insert or edit against the would-be state after the write.

    Every rule is evaluated and at most one violation is reported per rule;
    the first violation is the primary one shown to the user. When editing,
    the record's own prior state is excluded from every count.

    When ``partylists`` is given, the draft's partylist must be one of them
    and belong to the election. ``ballot_count`` is the number of ballots
    already cast for the edited candidate; such a candidate cannot be moved
    to another position, handed to another voter or deactivated.

    Raises:
        ConfigurationError: the position's capacity limits are non-positive.
        ValueError: the draft does not refer to the given election, position
            or voter.
    """
    if draft.election_id != election.id:
        raise ValueError("Draft election does not match the election snapshot")
    if draft.position_id != position.id:
        raise ValueError("Draft position does not match the position snapshot")
    if voter is not None and voter.id != draft.voter_id:
        raise ValueError("Draft voter does not match the voter snapshot")

    check_position_limits(position)

    existing_candidates = list(existing_candidates)
    others = _others(existing_candidates, election.id, draft.candidate_id)
    at_position = [c for c in others if c.position_id == position.id]
    violations: list[RuleViolation] = []

    if election.status in ElectionStatus.LOCKED_STATES:
        violations.append(
            RuleViolation(
                kind=ViolationKind.ELECTION_LOCKED,
                message=f"Cannot change candidates of a {election.status} election",
                details={"election_id": election.id, "status": election.status},
            )
        )

    if position.election_id != election.id:
        violations.append(
            RuleViolation(
                kind=ViolationKind.POSITION_NOT_IN_ELECTION,
                message=f"Position {position.name} does not belong to this election",
                details={"position_id": position.id, "election_id": election.id},
            )
        )

    if draft.is_active and not position.is_active:
        violations.append(
            RuleViolation(
                kind=ViolationKind.POSITION_INACTIVE,
                message=f"Position {position.name} is not accepting candidates",
                details={"position_id": position.id},
            )
        )

    if draft.partylist_id is not None and partylists is not None:
        if not any(
            p.id == draft.partylist_id and p.election_id == election.id
            for p in partylists
        ):
            violations.append(
                RuleViolation(
                    kind=ViolationKind.PARTYLIST_NOT_IN_ELECTION,
                    message="Partylist not found in this election",
                    details={
                        "partylist_id": draft.partylist_id,
                        "election_id": election.id,
                    },
                )
            )

    prior = next(
        (c for c in existing_candidates if c.id == draft.candidate_id), None
    )
    if prior is not None and ballot_count > 0 and (
        prior.position_id != draft.position_id
        or prior.voter_id != draft.voter_id
        or (prior.is_active and not draft.is_active)
    ):
        violations.append(
            RuleViolation(
                kind=ViolationKind.CANDIDATE_HOLDS_BALLOTS,
                message=(
                    "Candidate already has ballots and cannot be moved, "
                    "reassigned or withdrawn"
                ),
                details={"candidate_id": prior.id, "ballot_count": ballot_count},
            )
        )

    # Rule 1: one candidacy per voter per position
    if any(c.voter_id == draft.voter_id for c in at_position):
        violations.append(
            RuleViolation(
                kind=ViolationKind.VOTER_ALREADY_CANDIDATE,
                message=f"Voter is already a candidate for {position.name}",
                details={"voter_id": draft.voter_id, "position_id": position.id},
            )
        )

    if draft.is_active:
        active = [c for c in at_position if c.is_active]

        # Rule 2: position-wide cap
        if len(active) >= position.max_candidates:
            violations.append(
                RuleViolation(
                    kind=ViolationKind.POSITION_CAPACITY_EXCEEDED,
                    message=(
                        f"{position.name} already has the maximum of "
                        f"{position.max_candidates} candidates"
                    ),
                    details={
                        "position_id": position.id,
                        "max_candidates": position.max_candidates,
                        "current": len(active),
                    },
                )
            )

        # Rule 3: per-partylist cap, independents counted under the sentinel key
        same_party = [c for c in active if c.partylist_key == draft.partylist_key]
        if len(same_party) >= position.max_candidates_per_partylist:
            violations.append(
                RuleViolation(
                    kind=ViolationKind.PARTYLIST_CAPACITY_EXCEEDED,
                    message=(
                        f"{position.name} allows at most "
                        f"{position.max_candidates_per_partylist} candidate(s) "
                        f"per partylist"
                    ),
                    details={
                        "position_id": position.id,
                        "partylist": draft.partylist_key,
                        "max_candidates_per_partylist": position.max_candidates_per_partylist,
                        "current": len(same_party),
                    },
                )
            )

    # Rule 4: one affiliation per voter across the whole election
    conflict = next(
        (
            c
            for c in others
            if c.voter_id == draft.voter_id
            and c.position_id != position.id
            and c.partylist_key != draft.partylist_key
        ),
        None,
    )
    if conflict is not None:
        violations.append(
            RuleViolation(
                kind=ViolationKind.PARTYLIST_CONFLICT,
                message="Voter is already running under a different partylist in this election",
                details={
                    "voter_id": draft.voter_id,
                    "conflicting_candidate_id": conflict.id,
                    "existing_partylist": conflict.partylist_key,
                    "requested_partylist": draft.partylist_key,
                },
            )
        )

    # Rule 5: the voter must still qualify for this election type
    if voter is not None:
        reason = election_ineligibility_reason(voter, election)
        if reason is not None:
            violations.append(
                RuleViolation(
                    kind=ViolationKind.VOTER_NOT_ELIGIBLE,
                    message=reason,
                    details={"voter_id": voter.id},
                )
            )

    # Rule 6: ballot numbers are unique per position
    if any(c.candidate_number == draft.candidate_number for c in at_position):
        violations.append(
            RuleViolation(
                kind=ViolationKind.CANDIDATE_NUMBER_TAKEN,
                message=f"Candidate number {draft.candidate_number} is already taken for {position.name}",
                details={
                    "position_id": position.id,
                    "candidate_number": draft.candidate_number,
                },
            )
        )

    return ValidationResult(violations=tuple(violations))
