"""Unit tests for candidacy admission rules."""

import pytest

from campusvote.engine import admission
from campusvote.engine.errors import ConfigurationError
from campusvote.engine.models import (
    INDEPENDENT,
    ElectionStatus,
    ElectionType,
    Partylist,
    ViolationKind,
)


def _kinds(result):
    return [v.kind for v in result.violations]


@pytest.fixture
def position(make_position):
    return make_position(max_votes=2, max_candidates=4, max_candidates_per_partylist=2)


# ============================================
# CAPACITY RULES
# ============================================


class TestCapacity:
    def test_fifth_candidate_exceeds_position_capacity(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(partylist_id="party-x"),
            make_candidate(partylist_id="party-y"),
            make_candidate(partylist_id="party-z"),
            make_candidate(partylist_id=None),
        ]
        draft = make_draft(partylist_id="party-w", candidate_number=5)

        result = admission.validate(draft, make_election(), position, existing)

        assert not result.admitted
        assert _kinds(result) == [ViolationKind.POSITION_CAPACITY_EXCEEDED]

    def test_accepts_partylist_at_exact_limit(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(partylist_id="party-x")]
        draft = make_draft(partylist_id="party-x")

        result = admission.validate(draft, make_election(), position, existing)

        assert result.admitted

    def test_rejects_partylist_over_limit(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(partylist_id="party-x"),
            make_candidate(partylist_id="party-x"),
        ]
        draft = make_draft(partylist_id="party-x")

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [ViolationKind.PARTYLIST_CAPACITY_EXCEEDED]
        assert result.primary.details["partylist"] == "party-x"

    def test_independents_share_one_bucket(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(partylist_id=None), make_candidate(partylist_id=None)]
        draft = make_draft(partylist_id=None)

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [ViolationKind.PARTYLIST_CAPACITY_EXCEEDED]
        assert result.primary.details["partylist"] == INDEPENDENT

    def test_inactive_candidates_do_not_use_capacity(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(partylist_id="party-x", is_active=False) for _ in range(4)]
        draft = make_draft(partylist_id="party-x")

        result = admission.validate(draft, make_election(), position, existing)

        assert result.admitted

    def test_edit_excludes_own_prior_state(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(partylist_id="party-x"),
            make_candidate(partylist_id="party-x"),
        ]
        target = existing[1]
        draft = make_draft(
            voter_id=target.voter_id,
            partylist_id="party-x",
            candidate_number=target.candidate_number,
            candidate_id=target.id,
        )

        result = admission.validate(draft, make_election(), position, existing)

        assert result.admitted

    def test_non_positive_limit_is_configuration_error(
        self, make_election, make_position, make_draft
    ):
        position = make_position(max_candidates=0)

        with pytest.raises(ConfigurationError):
            admission.validate(make_draft(), make_election(), position, [])

    def test_remaining_capacity(self, position, make_candidate):
        existing = [
            make_candidate(partylist_id="party-x"),
            make_candidate(partylist_id=None),
            make_candidate(partylist_id="party-x", is_active=False),
        ]

        capacity = admission.remaining_capacity(position, existing)

        assert capacity["remaining"] == 2
        assert capacity["partylists"] == {INDEPENDENT: 1, "party-x": 1}


# ============================================
# CANDIDACY RULES
# ============================================


class TestCandidacy:
    def test_second_candidacy_same_position_rejected(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(voter_id="v1", partylist_id="party-x")]
        draft = make_draft(voter_id="v1", partylist_id="party-x")

        result = admission.validate(draft, make_election(), position, existing)

        assert result.primary.kind == ViolationKind.VOTER_ALREADY_CANDIDATE

    def test_same_partylist_other_position_accepted(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(voter_id="v1", partylist_id="party-x", position_id="position-vp")
        ]
        draft = make_draft(voter_id="v1", partylist_id="party-x")

        result = admission.validate(draft, make_election(), position, existing)

        assert result.admitted

    def test_different_partylist_other_position_rejected(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(voter_id="v1", partylist_id="party-x", position_id="position-vp")
        ]
        draft = make_draft(voter_id="v1", partylist_id="party-y")

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [ViolationKind.PARTYLIST_CONFLICT]

    def test_independent_conflicts_with_partylist_candidacy(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(voter_id="v1", partylist_id="party-x", position_id="position-vp")
        ]
        draft = make_draft(voter_id="v1", partylist_id=None)

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [ViolationKind.PARTYLIST_CONFLICT]

    def test_candidates_of_other_elections_ignored(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [
            make_candidate(voter_id="v1", partylist_id="party-x", election_id="election-2")
        ]
        draft = make_draft(voter_id="v1", partylist_id="party-y")

        result = admission.validate(draft, make_election(), position, existing)

        assert result.admitted

    def test_ineligible_voter(self, make_election, position, make_voter, make_draft):
        election = make_election(type=ElectionType.DEPARTMENTAL, department_id="dept-cs")
        voter = make_voter(id="v1", department_id="dept-cs", is_class_officer=False)
        draft = make_draft(voter_id="v1")

        result = admission.validate(draft, election, position, [], voter)

        assert _kinds(result) == [ViolationKind.VOTER_NOT_ELIGIBLE]

    def test_candidate_number_taken(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(candidate_number=7, partylist_id="party-x")]
        draft = make_draft(candidate_number=7, partylist_id="party-y")

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [ViolationKind.CANDIDATE_NUMBER_TAKEN]

    def test_locked_election_reported_first(
        self, make_election, position, make_candidate, make_draft
    ):
        existing = [make_candidate(voter_id="v1", partylist_id="party-x")]
        draft = make_draft(voter_id="v1", partylist_id="party-x")
        election = make_election(status=ElectionStatus.COMPLETED)

        result = admission.validate(draft, election, position, existing)

        assert _kinds(result) == [
            ViolationKind.ELECTION_LOCKED,
            ViolationKind.VOTER_ALREADY_CANDIDATE,
        ]

    def test_all_violations_reported_in_rule_order(
        self, make_election, make_position, make_candidate, make_draft
    ):
        position = make_position(max_candidates=1, max_candidates_per_partylist=1)
        existing = [
            make_candidate(voter_id="v1", partylist_id="party-x", candidate_number=3),
            make_candidate(voter_id="v1", partylist_id="party-y", position_id="position-vp"),
        ]
        draft = make_draft(voter_id="v1", partylist_id="party-x", candidate_number=3)

        result = admission.validate(draft, make_election(), position, existing)

        assert _kinds(result) == [
            ViolationKind.VOTER_ALREADY_CANDIDATE,
            ViolationKind.POSITION_CAPACITY_EXCEEDED,
            ViolationKind.PARTYLIST_CAPACITY_EXCEEDED,
            ViolationKind.PARTYLIST_CONFLICT,
            ViolationKind.CANDIDATE_NUMBER_TAKEN,
        ]

    def test_position_of_other_election(self, make_election, make_position, make_draft):
        position = make_position(election_id="election-2")

        result = admission.validate(make_draft(), make_election(), position, [])

        assert _kinds(result) == [ViolationKind.POSITION_NOT_IN_ELECTION]

    def test_mismatched_draft_raises(self, make_election, position, make_draft):
        with pytest.raises(ValueError):
            admission.validate(
                make_draft(election_id="election-2"), make_election(), position, []
            )


# ============================================
# POSITION, PARTYLIST & BALLOT GUARDS
# ============================================


@pytest.fixture
def make_partylist():
    def _make(**overrides):
        data = {"id": "party-x", "election_id": "election-1", "name": "Party X"}
        data.update(overrides)
        return Partylist(**data)

    return _make


class TestGuards:
    def test_inactive_position_rejects_new_candidates(
        self, make_election, make_position, make_draft
    ):
        position = make_position(is_active=False)

        result = admission.validate(make_draft(), make_election(), position, [])

        assert _kinds(result) == [ViolationKind.POSITION_INACTIVE]

    def test_inactive_position_allows_withdrawal(
        self, make_election, make_position, make_candidate, make_draft
    ):
        position = make_position(is_active=False)
        target = make_candidate()
        draft = make_draft(
            voter_id=target.voter_id,
            candidate_number=target.candidate_number,
            candidate_id=target.id,
            is_active=False,
        )

        result = admission.validate(draft, make_election(), position, [target])

        assert result.admitted

    def test_known_partylist_admitted(
        self, make_election, position, make_draft, make_partylist
    ):
        draft = make_draft(partylist_id="party-x")

        result = admission.validate(
            draft, make_election(), position, [], partylists=[make_partylist()]
        )

        assert result.admitted

    def test_unknown_partylist_rejected(self, make_election, position, make_draft):
        draft = make_draft(partylist_id="party-missing")

        result = admission.validate(draft, make_election(), position, [], partylists=[])

        assert _kinds(result) == [ViolationKind.PARTYLIST_NOT_IN_ELECTION]
        assert result.primary.message == "Partylist not found in this election"

    def test_partylist_of_other_election_rejected(
        self, make_election, position, make_draft, make_partylist
    ):
        draft = make_draft(partylist_id="party-x")

        result = admission.validate(
            draft,
            make_election(),
            position,
            [],
            partylists=[make_partylist(election_id="election-2")],
        )

        assert _kinds(result) == [ViolationKind.PARTYLIST_NOT_IN_ELECTION]

    def test_independent_needs_no_partylist(self, make_election, position, make_draft):
        result = admission.validate(make_draft(), make_election(), position, [], partylists=[])

        assert result.admitted

    def test_candidate_with_ballots_cannot_change_position(
        self, make_election, make_position, make_candidate, make_draft
    ):
        vice = make_position(id="position-vp", name="Vice President")
        target = make_candidate()
        draft = make_draft(
            voter_id=target.voter_id,
            position_id=vice.id,
            candidate_number=target.candidate_number,
            candidate_id=target.id,
        )

        result = admission.validate(draft, make_election(), vice, [target], ballot_count=3)

        assert _kinds(result) == [ViolationKind.CANDIDATE_HOLDS_BALLOTS]
        assert result.primary.details["ballot_count"] == 3

    def test_candidate_with_ballots_cannot_be_withdrawn(
        self, make_election, position, make_candidate, make_draft
    ):
        target = make_candidate()
        draft = make_draft(
            voter_id=target.voter_id,
            candidate_number=target.candidate_number,
            candidate_id=target.id,
            is_active=False,
        )

        result = admission.validate(draft, make_election(), position, [target], ballot_count=1)

        assert _kinds(result) == [ViolationKind.CANDIDATE_HOLDS_BALLOTS]

    def test_candidate_with_ballots_cannot_change_voter(
        self, make_election, position, make_candidate, make_draft
    ):
        target = make_candidate()
        draft = make_draft(
            voter_id="someone-else",
            candidate_number=target.candidate_number,
            candidate_id=target.id,
        )

        result = admission.validate(draft, make_election(), position, [target], ballot_count=1)

        assert _kinds(result) == [ViolationKind.CANDIDATE_HOLDS_BALLOTS]

    def test_candidate_with_ballots_may_change_number(
        self, make_election, position, make_candidate, make_draft
    ):
        target = make_candidate()
        draft = make_draft(
            voter_id=target.voter_id, candidate_number=42, candidate_id=target.id
        )

        result = admission.validate(draft, make_election(), position, [target], ballot_count=5)

        assert result.admitted

    def test_candidate_without_ballots_may_change_position(
        self, make_election, make_position, make_candidate, make_draft
    ):
        vice = make_position(id="position-vp", name="Vice President")
        target = make_candidate()
        draft = make_draft(
            voter_id=target.voter_id,
            position_id=vice.id,
            candidate_number=target.candidate_number,
            candidate_id=target.id,
        )

        result = admission.validate(draft, make_election(), vice, [target])

        assert result.admitted
