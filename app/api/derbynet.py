from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.core.deps import get_store, require_admin
from app.db.record_store import RecordStore
from app.schemas.admin import SyncResult
from app.services.derbynet_sync import (
    DerbyNetError,
    client_from_settings,
    push_results,
    sync_cars,
    sync_categories,
)
from app.services.results import ResultsService
from app.services.settings import DERBYNET_URL, SettingsService

router = APIRouter(prefix="/admin/derbynet", tags=["DerbyNet"])


class DerbyNetRequest(BaseModel):
    derbynet_url: str = ""  # vacío = el guardado en ajustes


def _client(store: RecordStore, data: DerbyNetRequest):
    settings = SettingsService(store)
    url = data.derbynet_url.strip()
    if url:
        with store.transaction():
            store.set_setting(DERBYNET_URL, url)
    try:
        return client_from_settings(settings, url)
    except DerbyNetError as e:
        raise HTTPException(400, str(e))


@router.post("/sync-cars", response_model=SyncResult)
def sync_derbynet_cars(
    data: DerbyNetRequest,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    with _client(store, data) as client:
        return sync_cars(store, client)


@router.post("/sync-categories", response_model=SyncResult)
def sync_derbynet_categories(
    data: DerbyNetRequest,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    with _client(store, data) as client:
        return sync_categories(store, client)


@router.post("/push-results", response_model=SyncResult)
def push_derbynet_results(
    data: DerbyNetRequest,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    with _client(store, data) as client:
        return push_results(ResultsService(store), store, client)
