"""
Recuento de resultados, ganadores y detección de conflictos.

Todo se calcula a partir de ``RecordStore.vote_tallies()`` en cada llamada;
el servicio no guarda estado entre peticiones.
"""
import logging
from collections import defaultdict
from typing import Optional

from app.db.models.category import Category
from app.db.record_store import RecordStore, TallyRow
from app.schemas.results import (
    CarResult,
    CategoryResult,
    CategoryWinner,
    ConflictsResponse,
    FullResults,
    MultiWinConflict,
    TieConflict,
    VotingStats,
)
from app.services.errors import StorageError
from app.services.settings import SettingsService

logger = logging.getLogger(__name__)


def rank_tallies(rows: list[TallyRow]) -> list[CarResult]:
    """Ordena por votos (desc) y asigna rank 1..n por posición.

    A igualdad de votos decide el id del coche; los empates reales los
    reporta detect_ties, no el rank.
    """
    ordered = sorted(rows, key=lambda r: (-r.vote_count, r.car_id))
    return [
        CarResult(
            car_id=row.car_id,
            car_number=row.car_number,
            car_name=row.car_name,
            racer_name=row.racer_name,
            photo_url=row.photo_url,
            vote_count=row.vote_count,
            rank=position,
        )
        for position, row in enumerate(ordered, start=1)
    ]


def _category_result(category: Category, votes: list[CarResult]) -> CategoryResult:
    has_override = category.override_winner_car_id is not None
    return CategoryResult(
        category_id=category.id,
        category_name=category.name,
        group_id=category.group_id,
        group_name=category.group.name if category.group else None,
        votes=votes,
        total_votes=sum(v.vote_count for v in votes),
        override_winner_car_id=category.override_winner_car_id,
        override_reason=category.override_reason,
        overridden_at=category.overridden_at,
        has_override=has_override,
    )


def vote_winner(result: CategoryResult) -> Optional[CarResult]:
    if result.votes and result.votes[0].vote_count > 0:
        return result.votes[0]
    return None


def find_in_votes(result: CategoryResult, car_id: int) -> Optional[CarResult]:
    for vote in result.votes:
        if vote.car_id == car_id:
            return vote
    return None


class ResultsService:
    def __init__(self, store: RecordStore, settings: SettingsService | None = None):
        self.store = store
        self.settings = settings or SettingsService(store)

    # ==================== Resultados ====================

    def category_results(self) -> list[CategoryResult]:
        tallies: dict[int, list[TallyRow]] = defaultdict(list)
        for row in self.store.vote_tallies():
            tallies[row.category_id].append(row)

        return [
            _category_result(category, rank_tallies(tallies.get(category.id, [])))
            for category in self.store.list_categories()
        ]

    def compute_results(self) -> FullResults:
        return FullResults(categories=self.category_results(), stats=self.stats())

    def compute_category_results(self, category_id: int) -> Optional[CategoryResult]:
        for result in self.category_results():
            if result.category_id == category_id:
                return result
        return None

    def stats(self) -> VotingStats:
        return VotingStats(**self.store.voting_stats(), voting_open=self.settings.is_voting_open())

    # ==================== Ganadores ====================

    def compute_winners(self) -> list[CategoryWinner]:
        winners = []
        for result in self.category_results():
            top = vote_winner(result)
            if top is None:
                continue
            winners.append(CategoryWinner(
                category_id=result.category_id,
                category_name=result.category_name,
                **top.model_dump(exclude={"rank"}),
            ))
        return winners

    def compute_final_winners(self) -> list[CategoryWinner]:
        """Ganador efectivo de cada categoría: el manual si lo hay, si no el más votado."""
        winners = []
        for result in self.category_results():
            if result.has_override:
                winner = self._override_winner(result)
            else:
                top = vote_winner(result)
                winner = None
                if top is not None:
                    winner = CategoryWinner(
                        category_id=result.category_id,
                        category_name=result.category_name,
                        **top.model_dump(exclude={"rank"}),
                    )
            if winner is not None:
                winners.append(winner)
        return winners

    def _override_winner(self, result: CategoryResult) -> Optional[CategoryWinner]:
        car_id = result.override_winner_car_id
        tallied = find_in_votes(result, car_id)
        if tallied is not None:
            fields = tallied.model_dump(exclude={"rank"})
        else:
            # Sin votos en esta categoría: datos desde el coche
            car = self.store.get_car(car_id)
            if car is None:
                logger.warning(
                    "Override car %s for category %s not found, skipping",
                    car_id, result.category_id,
                )
                return None
            fields = dict(
                car_id=car.id,
                car_number=car.car_number,
                car_name=car.car_name or "",
                racer_name=car.racer_name or "",
                photo_url=car.photo_url or "",
                vote_count=0,
            )
        return CategoryWinner(
            category_id=result.category_id,
            category_name=result.category_name,
            is_override=True,
            override_reason=result.override_reason,
            **fields,
        )

    # ==================== Conflictos ====================

    def detect_ties(self) -> list[TieConflict]:
        ties = []
        for result in self.category_results():
            # Un ganador manual resuelve cualquier empate
            if result.has_override or len(result.votes) < 2:
                continue

            max_votes = result.votes[0].vote_count
            tied = []
            for vote in result.votes:
                if vote.vote_count != max_votes:
                    break
                tied.append(vote)

            if len(tied) > 1:
                ties.append(TieConflict(
                    category_id=result.category_id,
                    category_name=result.category_name,
                    tied_cars=tied,
                ))
        return ties

    def detect_multiple_wins(self) -> list[MultiWinConflict]:
        limits = {
            group.id: (group.max_wins_per_car, group.name)
            for group in self.store.list_category_groups()
            if group.max_wins_per_car and group.max_wins_per_car > 0
        }

        # (car_id, group_id) -> datos acumulados, en orden de aparición
        wins: dict[tuple[int, int], dict] = {}
        for result in self.category_results():
            if result.group_id is None or result.group_id not in limits:
                continue

            winner = self._effective_winner(result)
            if winner is None:
                continue
            car_id, car_number, racer_name = winner

            entry = wins.setdefault((car_id, result.group_id), {
                "car_number": car_number,
                "racer_name": racer_name,
                "awards": [],
                "category_ids": [],
            })
            entry["awards"].append(result.category_name)
            entry["category_ids"].append(result.category_id)

        conflicts = []
        for (car_id, group_id), entry in wins.items():
            max_wins, group_name = limits[group_id]
            if len(entry["awards"]) <= max_wins:
                continue
            conflicts.append(MultiWinConflict(
                car_id=car_id,
                car_number=entry["car_number"],
                racer_name=entry["racer_name"],
                awards_won=entry["awards"],
                category_ids=entry["category_ids"],
                group_id=group_id,
                group_name=group_name,
                max_wins_per_car=max_wins,
            ))
        return conflicts

    def _effective_winner(self, result: CategoryResult) -> Optional[tuple[int, str, str]]:
        if result.has_override:
            car_id = result.override_winner_car_id
            tallied = find_in_votes(result, car_id)
            if tallied is not None:
                return car_id, tallied.car_number, tallied.racer_name
            try:
                car = self.store.get_car(car_id)
            except StorageError:
                logger.warning(
                    "Lookup of override car %s failed, skipping category %s",
                    car_id, result.category_id, exc_info=True,
                )
                return None
            if car is None:
                logger.warning(
                    "Override car %s not found, skipping category %s",
                    car_id, result.category_id,
                )
                return None
            return car.id, car.car_number, car.racer_name or ""

        top = vote_winner(result)
        if top is None:
            return None
        return top.car_id, top.car_number, top.racer_name

    def detect_conflicts(self) -> ConflictsResponse:
        return ConflictsResponse(ties=self.detect_ties(), multi_wins=self.detect_multiple_wins())
