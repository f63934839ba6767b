from fastapi import APIRouter, Depends

from app.core.deps import get_store
from app.db.record_store import RecordStore
from app.schemas.voting import VoteData, VoteResult, VoteSubmitRequest
from app.services.settings import SettingsService
from app.services.voters import generate_open_code
from app.services.voting import VotingService

router = APIRouter(prefix="/api", tags=["Vote"])


@router.get("/vote-data/{voter_code}", response_model=VoteData)
def get_vote_data(voter_code: str, store: RecordStore = Depends(get_store)):
    """Categorías, coches y selección actual del votante del código."""
    return VotingService(store).get_vote_data(voter_code)


@router.post("/vote", response_model=VoteResult)
def submit_vote(vote: VoteSubmitRequest, store: RecordStore = Depends(get_store)):
    return VotingService(store).submit_vote(vote.voter_qr, vote.category_id, vote.car_id)


@router.get("/voting-status")
def voting_status(store: RecordStore = Depends(get_store)):
    settings = SettingsService(store)
    close_time = settings.voting_close_time()
    return {
        "voting_open": settings.is_voting_open(),
        "close_time": close_time.isoformat() if close_time else None,
    }


# Registro abierto: el votante pide un código nuevo
@router.get("/new-code")
def new_code(store: RecordStore = Depends(get_store)):
    return {"qr_code": generate_open_code(store)}
