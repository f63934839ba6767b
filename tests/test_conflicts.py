import pytest

from app.services.errors import StorageError
from app.services.results import ResultsService
from tests.factories import cast_votes, make_car, make_category, make_group


@pytest.fixture
def results(store, settings) -> ResultsService:
    return ResultsService(store, settings)


class TestDetectTies:
    def test_two_way_tie(self, db, store, results):
        paint = make_category(db, "Best Paint")
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        cast_votes(store, paint, car_a, 2)
        cast_votes(store, paint, car_b, 2)

        ties = results.detect_ties()

        assert len(ties) == 1
        assert ties[0].category_name == "Best Paint"
        assert {c.car_id for c in ties[0].tied_cars} == {car_a.id, car_b.id}

    def test_only_the_top_count_is_reported(self, db, store, results):
        paint = make_category(db, "Best Paint")
        cars = [make_car(db, str(100 + i)) for i in range(5)]
        for car, n in zip(cars, [3, 3, 3, 1, 1]):
            cast_votes(store, paint, car, n)

        ties = results.detect_ties()

        assert len(ties) == 1
        assert [c.car_id for c in ties[0].tied_cars] == [c.id for c in cars[:3]]

    def test_override_resolves_the_tie(self, db, store, results):
        paint = make_category(db, "Best Paint")
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        cast_votes(store, paint, car_a, 2)
        cast_votes(store, paint, car_b, 2)
        with store.transaction():
            store.set_manual_winner(paint.id, car_b.id, "Judges' decision")

        assert results.detect_ties() == []

    def test_single_car_and_empty_categories_are_never_ties(self, db, store, results):
        solo = make_category(db, "Solo")
        make_category(db, "Empty")
        cast_votes(store, solo, make_car(db, "101"), 2)

        assert results.detect_ties() == []

    def test_clear_lead_is_not_a_tie(self, db, store, results):
        best = make_category(db, "Best Design")
        cast_votes(store, best, make_car(db, "101"), 3)
        cast_votes(store, best, make_car(db, "102"), 2)

        assert results.detect_ties() == []


class TestDetectMultipleWins:
    def test_car_over_the_cap(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design, display_order=1)
        creative = make_category(db, "Most Creative", group=design, display_order=2)
        car_a = make_car(db, "101", racer_name="Alex")
        car_b = make_car(db, "102")
        cast_votes(store, best, car_a, 3)
        cast_votes(store, best, car_b, 1)
        cast_votes(store, creative, car_a, 2)

        conflicts = results.detect_multiple_wins()

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.car_id == car_a.id
        assert conflict.racer_name == "Alex"
        assert conflict.awards_won == ["Best Design", "Most Creative"]
        assert conflict.category_ids == [best.id, creative.id]
        assert conflict.group_id == design.id
        assert conflict.group_name == "Design Awards"
        assert conflict.max_wins_per_car == 1

    def test_wins_at_the_cap_are_allowed(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=2)
        car = make_car(db, "101")
        for name in ("Best Design", "Most Creative"):
            cast_votes(store, make_category(db, name, group=design), car, 1)

        assert results.detect_multiple_wins() == []

    def test_groups_without_cap_never_conflict(self, db, store, results):
        fun = make_group(db, "Fun Awards")
        zero_cap = make_group(db, "Zero cap", max_wins=0)
        car = make_car(db, "101")
        for name in ("Funniest", "Most Colorful", "Wildest"):
            cast_votes(store, make_category(db, name, group=fun), car, 1)
        for name in ("Odd", "Odder"):
            cast_votes(store, make_category(db, name, group=zero_cap), car, 1)

        assert results.detect_multiple_wins() == []

    def test_wins_are_counted_per_group(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        speed = make_group(db, "Speed Looks", max_wins=1)
        car = make_car(db, "101")
        cast_votes(store, make_category(db, "Best Design", group=design), car, 1)
        cast_votes(store, make_category(db, "Fastest Looking", group=speed), car, 1)

        assert results.detect_multiple_wins() == []

    def test_override_counts_as_a_win(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design, display_order=1)
        creative = make_category(db, "Most Creative", group=design, display_order=2)
        car_a = make_car(db, "101")
        car_b = make_car(db, "102", racer_name="Bo")
        cast_votes(store, best, car_a, 2)
        cast_votes(store, creative, car_b, 2)
        with store.transaction():
            store.set_manual_winner(best.id, car_b.id, "Judges' decision")

        conflicts = results.detect_multiple_wins()

        assert len(conflicts) == 1
        assert conflicts[0].car_id == car_b.id
        assert conflicts[0].racer_name == "Bo"
        assert conflicts[0].awards_won == ["Best Design", "Most Creative"]

    def test_override_removes_a_violation(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design)
        creative = make_category(db, "Most Creative", group=design)
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        cast_votes(store, best, car_a, 2)
        cast_votes(store, creative, car_a, 2)
        with store.transaction():
            store.set_manual_winner(creative.id, car_b.id, "One award per car")

        assert results.detect_multiple_wins() == []

    def test_missing_override_car_skips_only_that_category(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design, display_order=1)
        creative = make_category(db, "Most Creative", group=design, display_order=2)
        paint = make_category(db, "Best Paint", group=design, display_order=3)
        car_a = make_car(db, "101")
        gone = make_car(db, "102", active=False)
        cast_votes(store, best, car_a, 2)
        cast_votes(store, creative, car_a, 2)
        with store.transaction():
            store.set_manual_winner(paint.id, gone.id, "Judges' decision")

        conflicts = results.detect_multiple_wins()

        assert len(conflicts) == 1
        assert conflicts[0].awards_won == ["Best Design", "Most Creative"]

    def test_storage_error_in_override_lookup_is_skipped(self, db, store, results, monkeypatch):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design)
        creative = make_category(db, "Most Creative", group=design)
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        cast_votes(store, best, car_a, 2)
        cast_votes(store, creative, car_a, 2)
        # car_b no tiene votos: hay que buscarlo y la búsqueda falla
        with store.transaction():
            store.set_manual_winner(creative.id, car_b.id, "Judges' decision")

        def broken_get_car(car_id):
            raise StorageError("connection lost")

        monkeypatch.setattr(store, "get_car", broken_get_car)

        assert results.detect_multiple_wins() == []

    def test_detect_conflicts_bundles_both_checks(self, db, store, results):
        design = make_group(db, "Design Awards", max_wins=1)
        best = make_category(db, "Best Design", group=design)
        creative = make_category(db, "Most Creative", group=design)
        paint = make_category(db, "Best Paint")
        car_a = make_car(db, "101")
        car_b = make_car(db, "102")
        cast_votes(store, best, car_a, 1)
        cast_votes(store, creative, car_a, 1)
        cast_votes(store, paint, car_a, 2)
        cast_votes(store, paint, car_b, 2)

        conflicts = results.detect_conflicts()

        assert [t.category_name for t in conflicts.ties] == ["Best Paint"]
        assert [m.car_id for m in conflicts.multi_wins] == [car_a.id]
