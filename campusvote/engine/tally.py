"""Vote tallying: ranked, percentage-scored results per position and scope."""

import threading
from collections import Counter, OrderedDict
from collections.abc import Iterable, Mapping

from campusvote.engine.errors import DataIntegrityError
from campusvote.engine.models import (
    GLOBAL,
    Ballot,
    Candidate,
    CandidateResult,
    Position,
    PositionResult,
    Scope,
)


# ============================================
# POSITION TALLY
# ============================================


def _position_ballots(
    ballots: Iterable[Ballot],
    position: Position,
    scope: Scope,
    voter_departments: Mapping[str, str | None] | None,
) -> list[Ballot]:
    """Select the position's ballots and apply the scope filter."""
    selected = [
        b
        for b in ballots
        if b.election_id == position.election_id and b.position_id == position.id
    ]

    seen: set[str] = set()
    for ballot in selected:
        if ballot.voter_id in seen:
            raise DataIntegrityError(
                f"Voter has more than one ballot for position {position.name}",
                position_id=position.id,
                voter_id=ballot.voter_id,
            )
        seen.add(ballot.voter_id)

    if scope.is_global:
        return selected

    if voter_departments is None:
        raise ValueError("A department-scoped tally needs the voter department mapping")

    missing = sorted(b.voter_id for b in selected if b.voter_id not in voter_departments)
    if missing:
        raise DataIntegrityError(
            f"Ballots reference unknown voters for position {position.name}",
            position_id=position.id,
            voter_id=missing[0],
        )

    return [b for b in selected if voter_departments[b.voter_id] == scope.department_id]


def tally(
    ballots: Iterable[Ballot],
    candidates: Iterable[Candidate],
    position: Position,
    scope: Scope = GLOBAL,
    voter_departments: Mapping[str, str | None] | None = None,
    percent_decimals: int = 2,
) -> PositionResult:
    """
    Aggregate ballots into a ranked result for one position.

    Candidates are ordered by vote count descending, then candidate number
    ascending, then candidate id, so the output is identical for any
    ordering of the inputs. Every active candidate appears, with zero votes
    if nobody chose them; inactive candidates appear only when they hold
    ballots. The first ``position.max_votes`` entries are the winners.

    Args:
        ballots: Submitted ballots; ballots of other positions are ignored.
        candidates: Candidates; those of other positions are ignored.
        position: The position to tally.
        scope: GLOBAL, or Scope.department(id) to count only ballots cast by
            voters of that department.
        voter_departments: Voter id to department id, required for
            department scopes.
        percent_decimals: Rounding applied to vote percentages.

    Raises:
        DataIntegrityError: non-positive max_votes, a voter with two ballots
            for the position, or a ballot for an unknown candidate or voter.
    """
    selected = _position_ballots(ballots, position, scope, voter_departments)
    counts = Counter(b.candidate_id for b in selected)
    return rank_counts(counts, candidates, position, scope, percent_decimals)


def rank_counts(
    counts: Mapping[str, int],
    candidates: Iterable[Candidate],
    position: Position,
    scope: Scope = GLOBAL,
    percent_decimals: int = 2,
) -> PositionResult:
    """
    Rank pre-aggregated vote counts (candidate id to count) for one position.

    Used directly when counts come from a database aggregate; applies the
    same ordering, winner and percentage rules as tally().

    Raises:
        DataIntegrityError: non-positive max_votes, a negative count, or a
            count for a candidate not running for the position.
    """
    if position.max_votes <= 0:
        raise DataIntegrityError(
            f"Position {position.name} has a non-positive number of seats",
            position_id=position.id,
            max_votes=position.max_votes,
        )

    negative = sorted(cid for cid, count in counts.items() if count < 0)
    if negative:
        raise DataIntegrityError(
            f"Negative vote count recorded for position {position.name}",
            position_id=position.id,
            candidate_id=negative[0],
        )

    counts = Counter({cid: count for cid, count in counts.items() if count > 0})

    roster = {
        c.id: c
        for c in candidates
        if c.election_id == position.election_id and c.position_id == position.id
    }

    orphaned = sorted(cid for cid in counts if cid not in roster)
    if orphaned:
        raise DataIntegrityError(
            f"Ballots reference candidates that are not running for {position.name}",
            position_id=position.id,
            candidate_id=orphaned[0],
        )

    listed = [c for c in roster.values() if c.is_active or counts[c.id] > 0]
    listed.sort(key=lambda c: (-counts[c.id], c.candidate_number, c.id))

    total = sum(counts[c.id] for c in listed)

    results = []
    for index, candidate in enumerate(listed):
        vote_count = counts[candidate.id]
        percentage = round(vote_count / total * 100, percent_decimals) if total > 0 else 0.0
        results.append(
            CandidateResult(
                candidate_id=candidate.id,
                candidate_number=candidate.candidate_number,
                partylist_id=candidate.partylist_id,
                vote_count=vote_count,
                vote_percentage=percentage,
                rank=index + 1,
                is_winner=index < position.max_votes,
            )
        )

    seats = position.max_votes
    tie_at_cutoff = (
        len(results) > seats
        and results[seats - 1].vote_count == results[seats].vote_count
    )

    return PositionResult(
        position_id=position.id,
        position_name=position.name,
        max_votes=position.max_votes,
        scope=scope.key,
        candidates=tuple(results),
        total_votes_for_position=total,
        tie_at_cutoff=tie_at_cutoff,
    )


# ============================================
# ELECTION-WIDE TALLIES
# ============================================


def tally_election(
    ballots: Iterable[Ballot],
    candidates: Iterable[Candidate],
    positions: Iterable[Position],
    scope: Scope = GLOBAL,
    voter_departments: Mapping[str, str | None] | None = None,
    percent_decimals: int = 2,
) -> list[PositionResult]:
    """Tally every position, ordered by position order then name."""
    ballots = list(ballots)
    candidates = list(candidates)
    ordered = sorted(positions, key=lambda p: (p.order, p.name, p.id))
    return [
        tally(ballots, candidates, position, scope, voter_departments, percent_decimals)
        for position in ordered
    ]


def tally_by_department(
    ballots: Iterable[Ballot],
    candidates: Iterable[Candidate],
    position: Position,
    voter_departments: Mapping[str, str | None],
    percent_decimals: int = 2,
) -> dict[str, PositionResult]:
    """Tally one position separately for every department that has voters, sorted by id."""
    ballots = list(ballots)
    candidates = list(candidates)
    departments = sorted({d for d in voter_departments.values() if d is not None})
    return {
        department_id: tally(
            ballots,
            candidates,
            position,
            Scope.department(department_id),
            voter_departments,
            percent_decimals,
        )
        for department_id in departments
    }


# ============================================
# RESULT CACHE
# ============================================


class TallyCache:
    """
    Thread-safe LRU cache of position results.

    Keys are (position_id, scope key, ballot set version). Ballots are
    append-only, so a version derived from the ballot count and latest
    submission identifies the tally input.
    """

    def __init__(self, max_size: int = 256) -> None:
        self.max_size = max_size
        self._entries: OrderedDict[tuple[str, str, str], PositionResult] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, position_id: str, scope: Scope, version: str) -> PositionResult | None:
        key = (position_id, scope.key, version)
        with self._lock:
            result = self._entries.get(key)
            if result is not None:
                self._entries.move_to_end(key)
            return result

    def put(self, position_id: str, scope: Scope, version: str, result: PositionResult) -> None:
        if self.max_size <= 0:
            return
        key = (position_id, scope.key, version)
        with self._lock:
            self._entries[key] = result
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
