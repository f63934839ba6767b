import pytest
from sqlalchemy import func, select

from app.db.models.vote import Vote
from app.db.models.voter import Voter
from app.services.errors import (
    CategoryNotFound,
    EntrantNotEligible,
    EntrantNotFound,
    StorageError,
    UnregisteredCode,
    ValidationError,
    VotingClosed,
)
from app.services.voting import VotingService
from tests.factories import make_car, make_category, make_group


@pytest.fixture
def voting(store, settings) -> VotingService:
    return VotingService(store, settings)


def vote_rows(db, voter_code: str) -> dict[int, int]:
    rows = db.execute(
        select(Vote.category_id, Vote.car_id)
        .join(Voter, Vote.voter_id == Voter.id)
        .where(Voter.qr_code == voter_code)
    ).all()
    return {category_id: car_id for category_id, car_id in rows}


def count_rows(db, voter_code: str, category_id: int) -> int:
    return db.scalar(
        select(func.count(Vote.id))
        .join(Voter, Vote.voter_id == Voter.id)
        .where(Voter.qr_code == voter_code, Vote.category_id == category_id)
    )


class TestSubmitVote:
    def test_records_vote_and_creates_voter(self, db, voting):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")

        result = voting.submit_vote("AB-CDE", category.id, car.id)

        assert result.status == "success"
        assert result.message == "Vote recorded"
        assert result.conflict_cleared is False
        assert result.conflict_category_id is None
        assert vote_rows(db, "AB-CDE") == {category.id: car.id}
        voter = db.scalars(select(Voter).where(Voter.qr_code == "AB-CDE")).one()
        assert voter.voter_type == "general"
        assert voter.last_voted_at is not None

    def test_voting_closed(self, db, voting, settings):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")
        settings.close_voting()

        with pytest.raises(VotingClosed):
            voting.submit_vote("AB-CDE", category.id, car.id)
        assert vote_rows(db, "AB-CDE") == {}

    def test_unregistered_code_rejected_when_registration_required(self, db, voting, store, settings):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")
        with store.transaction():
            store.set_setting("require_registered_qr", "true")

        with pytest.raises(UnregisteredCode):
            voting.submit_vote("ZZ-ZZZ", category.id, car.id)
        assert store.get_voter_by_code("ZZ-ZZZ") is None

    def test_registered_code_accepted_when_registration_required(self, db, voting, store):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")
        with store.transaction():
            store.set_setting("require_registered_qr", "true")
            store.create_voter("RG-123")

        voting.submit_vote("RG-123", category.id, car.id)

        assert vote_rows(db, "RG-123") == {category.id: car.id}

    def test_unknown_car(self, db, voting):
        category = make_category(db, "Best Design")

        with pytest.raises(EntrantNotFound):
            voting.submit_vote("AB-CDE", category.id, 999)

    def test_soft_deleted_car_is_not_found(self, db, voting):
        car = make_car(db, "101", active=False)
        category = make_category(db, "Best Design")

        with pytest.raises(EntrantNotFound):
            voting.submit_vote("AB-CDE", category.id, car.id)

    def test_ineligible_car_changes_nothing(self, db, voting, store):
        car = make_car(db, "101", eligible=False)
        category = make_category(db, "Best Design")

        with pytest.raises(EntrantNotEligible):
            voting.submit_vote("NEW-01", category.id, car.id)

        # El votante creado en la misma llamada también se deshace
        assert store.get_voter_by_code("NEW-01") is None

    def test_unknown_category(self, db, voting):
        car = make_car(db, "101")

        with pytest.raises(CategoryNotFound):
            voting.submit_vote("AB-CDE", 999, car.id)

    def test_blank_code(self, db, voting):
        category = make_category(db, "Best Design")

        with pytest.raises(ValidationError):
            voting.submit_vote("   ", category.id, 0)

    def test_switching_car_in_same_category_is_not_a_conflict(self, db, voting):
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        pool = make_group(db, "Design", pool_id=1)
        category = make_category(db, "Best Design", group=pool)

        voting.submit_vote("AB-CDE", category.id, car_a.id)
        result = voting.submit_vote("AB-CDE", category.id, car_b.id)

        assert result.conflict_cleared is False
        assert count_rows(db, "AB-CDE", category.id) == 1
        assert vote_rows(db, "AB-CDE") == {category.id: car_b.id}

    def test_same_vote_twice_is_idempotent(self, db, voting):
        car = make_car(db, "101")
        pool = make_group(db, "Design", pool_id=1)
        category = make_category(db, "Best Design", group=pool)

        voting.submit_vote("AB-CDE", category.id, car.id)
        result = voting.submit_vote("AB-CDE", category.id, car.id)

        assert result.conflict_cleared is False
        assert count_rows(db, "AB-CDE", category.id) == 1


class TestExclusivityPool:
    def test_vote_moves_between_pool_categories(self, db, voting):
        car = make_car(db, "101")
        pool = make_group(db, "Speed Looks", pool_id=7)
        fastest = make_category(db, "Fastest Looking", group=pool, display_order=1)
        aero = make_category(db, "Most Aerodynamic", group=pool, display_order=2)

        first = voting.submit_vote("VX-001", fastest.id, car.id)
        second = voting.submit_vote("VX-001", aero.id, car.id)

        assert first.conflict_cleared is False
        assert second.conflict_cleared is True
        assert second.conflict_category_id == fastest.id
        assert second.conflict_category_name == "Fastest Looking"
        assert vote_rows(db, "VX-001") == {aero.id: car.id}

    def test_different_cars_in_pool_do_not_conflict(self, db, voting):
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        pool = make_group(db, "Speed Looks", pool_id=7)
        fastest = make_category(db, "Fastest Looking", group=pool)
        aero = make_category(db, "Most Aerodynamic", group=pool)

        voting.submit_vote("VX-001", fastest.id, car_a.id)
        result = voting.submit_vote("VX-001", aero.id, car_b.id)

        assert result.conflict_cleared is False
        assert vote_rows(db, "VX-001") == {fastest.id: car_a.id, aero.id: car_b.id}

    def test_groups_sharing_a_pool_id_conflict(self, db, voting):
        car = make_car(db, "101")
        first_group = make_group(db, "Looks A", pool_id=3)
        second_group = make_group(db, "Looks B", pool_id=3)
        shiny = make_category(db, "Shiniest", group=first_group)
        sleek = make_category(db, "Sleekest", group=second_group)

        voting.submit_vote("VX-001", shiny.id, car.id)
        result = voting.submit_vote("VX-001", sleek.id, car.id)

        assert result.conflict_cleared is True
        assert vote_rows(db, "VX-001") == {sleek.id: car.id}

    def test_other_pools_and_ungrouped_categories_are_independent(self, db, voting):
        car = make_car(db, "101")
        pool_one = make_group(db, "Pool 1", pool_id=1)
        pool_two = make_group(db, "Pool 2", pool_id=2)
        no_pool = make_group(db, "No pool", max_wins=2)
        in_one = make_category(db, "One", group=pool_one)
        in_two = make_category(db, "Two", group=pool_two)
        grouped = make_category(db, "Grouped", group=no_pool)
        loose = make_category(db, "Loose")

        results = [
            voting.submit_vote("VX-001", category.id, car.id)
            for category in (in_one, in_two, grouped, loose)
        ]

        assert not any(r.conflict_cleared for r in results)
        assert len(vote_rows(db, "VX-001")) == 4

    def test_other_voters_are_untouched(self, db, voting):
        car = make_car(db, "101")
        pool = make_group(db, "Speed Looks", pool_id=7)
        fastest = make_category(db, "Fastest Looking", group=pool)
        aero = make_category(db, "Most Aerodynamic", group=pool)

        voting.submit_vote("VX-001", fastest.id, car.id)
        voting.submit_vote("VX-002", aero.id, car.id)

        assert vote_rows(db, "VX-001") == {fastest.id: car.id}
        assert vote_rows(db, "VX-002") == {aero.id: car.id}

    def test_failed_save_keeps_the_conflicting_vote(self, db, voting, store, monkeypatch):
        car = make_car(db, "101")
        pool = make_group(db, "Speed Looks", pool_id=7)
        fastest = make_category(db, "Fastest Looking", group=pool)
        aero = make_category(db, "Most Aerodynamic", group=pool)
        voting.submit_vote("VX-001", fastest.id, car.id)

        def broken_save(*args, **kwargs):
            raise StorageError("disk full")

        monkeypatch.setattr(store, "save_vote", broken_save)
        with pytest.raises(StorageError):
            voting.submit_vote("VX-001", aero.id, car.id)

        assert vote_rows(db, "VX-001") == {fastest.id: car.id}


class TestDeselect:
    def test_car_zero_deletes_the_vote(self, db, voting):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")
        voting.submit_vote("AB-CDE", category.id, car.id)

        result = voting.submit_vote("AB-CDE", category.id, 0)

        assert result.status == "success"
        assert result.conflict_cleared is False
        assert vote_rows(db, "AB-CDE") == {}

    def test_deselect_without_a_vote_is_fine(self, db, voting):
        category = make_category(db, "Best Design")

        result = voting.submit_vote("AB-CDE", category.id, 0)

        assert result.status == "success"
        assert vote_rows(db, "AB-CDE") == {}

    def test_deselect_after_car_became_ineligible(self, db, voting):
        car = make_car(db, "101")
        category = make_category(db, "Best Design")
        voting.submit_vote("AB-CDE", category.id, car.id)
        car.eligible = False
        db.commit()

        voting.submit_vote("AB-CDE", category.id, 0)

        assert vote_rows(db, "AB-CDE") == {}


class TestVoteData:
    def test_filters_categories_by_voter_type(self, db, voting, store):
        everyone = make_category(db, "Best Design", display_order=1)
        committee = make_category(
            db, "Committee Pick", display_order=2, allowed_voter_types=["Race Committee"]
        )
        with store.transaction():
            store.create_voter("RC-001", voter_type="Race Committee")

        general = voting.get_vote_data("GN-001")
        judge = voting.get_vote_data("RC-001")

        assert [c.id for c in general.categories] == [everyone.id]
        assert [c.id for c in judge.categories] == [everyone.id, committee.id]
        assert judge.voter_type == "Race Committee"

    def test_lists_only_eligible_cars_and_current_votes(self, db, voting, store):
        eligible = make_car(db, "101")
        make_car(db, "102", eligible=False)
        make_car(db, "103", active=False)
        category = make_category(db, "Best Design")
        with store.transaction():
            store.set_setting("voting_instructions", "Pick one car per award")
        voting.submit_vote("AB-CDE", category.id, eligible.id)

        data = voting.get_vote_data("AB-CDE")

        assert [c.car_number for c in data.cars] == ["101"]
        assert data.votes == {category.id: eligible.id}
        assert data.instructions == "Pick one car per award"
        assert data.voting_open is True
