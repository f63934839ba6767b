import logging

from app.db.record_store import RecordStore
from app.schemas.results import OverrideInfo
from app.services.errors import CategoryNotFound, EntrantNotFound, ValidationError
from app.services.results import ResultsService, find_in_votes

logger = logging.getLogger(__name__)


class OverrideService:
    """Ganador forzado por el administrador; tiene prioridad sobre los votos."""

    def __init__(self, store: RecordStore, results: ResultsService | None = None):
        self.store = store
        self.results = results or ResultsService(store)

    def set_manual_winner(self, category_id: int, car_id: int, reason: str) -> None:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("reason is required for manual override")
        if self.store.get_category(category_id) is None:
            raise CategoryNotFound()
        if self.store.get_car(car_id) is None:
            raise EntrantNotFound()

        with self.store.transaction():
            self.store.set_manual_winner(category_id, car_id, reason)
        logger.info("Manual winner set category=%s car=%s reason=%r", category_id, car_id, reason)

    def clear_manual_winner(self, category_id: int) -> None:
        with self.store.transaction():
            self.store.clear_manual_winner(category_id)
        logger.info("Manual winner cleared category=%s", category_id)

    def list_overrides(self) -> list[OverrideInfo]:
        overrides = []
        for result in self.results.category_results():
            if not result.has_override:
                continue
            car_id = result.override_winner_car_id
            tallied = find_in_votes(result, car_id)
            if tallied is not None:
                car_number, racer_name = tallied.car_number, tallied.racer_name
            else:
                car = self.store.get_car(car_id)
                car_number = car.car_number if car else ""
                racer_name = (car.racer_name or "") if car else ""
            overrides.append(OverrideInfo(
                category_id=result.category_id,
                category_name=result.category_name,
                car_id=car_id,
                car_number=car_number,
                racer_name=racer_name,
                reason=result.override_reason or "",
                overridden_at=result.overridden_at,
            ))
        return overrides
