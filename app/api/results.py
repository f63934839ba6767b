from fastapi import APIRouter, Depends, HTTPException

from app.core.deps import get_store, require_admin
from app.db.record_store import RecordStore
from app.schemas.results import (
    CategoryResult,
    CategoryWinner,
    ConflictsResponse,
    FullResults,
    OverrideInfo,
    OverrideRequest,
    VotingStats,
)
from app.services.overrides import OverrideService
from app.services.results import ResultsService
from app.services.settings import SettingsService

router = APIRouter(prefix="/admin", tags=["Results"])


@router.get("/results", response_model=FullResults)
def get_results(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return ResultsService(store).compute_results()


@router.get("/results/{category_id}", response_model=CategoryResult)
def get_category_results(
    category_id: int,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    result = ResultsService(store).compute_category_results(category_id)
    if result is None:
        raise HTTPException(404, "Categoría no encontrada")
    return result


@router.get("/stats", response_model=VotingStats)
def get_stats(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return ResultsService(store).stats()


@router.get("/winners", response_model=list[CategoryWinner])
def get_winners(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return ResultsService(store).compute_winners()


@router.get("/winners/final", response_model=list[CategoryWinner])
def get_final_winners(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    """Ganadores teniendo en cuenta los ganadores manuales."""
    return ResultsService(store).compute_final_winners()


# -----------------------
# Conflictos y ganador manual
# -----------------------
@router.get("/conflicts", response_model=ConflictsResponse)
def get_conflicts(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return ResultsService(store).detect_conflicts()


@router.get("/overrides", response_model=list[OverrideInfo])
def list_overrides(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return OverrideService(store).list_overrides()


@router.post("/categories/{category_id}/override")
def set_override(
    category_id: int,
    data: OverrideRequest,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    # Los empates se resuelven con la votación ya cerrada
    if SettingsService(store).is_voting_open():
        raise HTTPException(400, "Cannot resolve conflicts while voting is still open")

    OverrideService(store).set_manual_winner(category_id, data.car_id, data.reason)
    return {"message": "Ganador manual asignado"}


@router.delete("/categories/{category_id}/override")
def clear_override(
    category_id: int,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    if SettingsService(store).is_voting_open():
        raise HTTPException(400, "Cannot clear conflict resolution while voting is still open")

    OverrideService(store).clear_manual_winner(category_id)
    return {"message": "Ganador manual eliminado"}
