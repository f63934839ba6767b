from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class CarResult(BaseModel):
    car_id: int
    car_number: str
    car_name: str
    racer_name: str
    photo_url: str
    vote_count: int
    rank: int


class CategoryResult(BaseModel):
    category_id: int
    category_name: str
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    votes: list[CarResult] = []
    total_votes: int = 0
    override_winner_car_id: Optional[int] = None
    override_reason: Optional[str] = None
    overridden_at: Optional[datetime] = None
    has_override: bool = False


class VotingStats(BaseModel):
    total_voters: int
    voters_who_voted: int
    total_votes: int
    total_categories: int
    total_cars: int
    voting_open: bool


class FullResults(BaseModel):
    categories: list[CategoryResult]
    stats: VotingStats


class CategoryWinner(BaseModel):
    category_id: int
    category_name: str
    car_id: int
    car_number: str
    car_name: str
    racer_name: str
    photo_url: str
    vote_count: int
    is_override: bool = False
    override_reason: Optional[str] = None


# ---- Conflictos ----
class TieConflict(BaseModel):
    category_id: int
    category_name: str
    tied_cars: list[CarResult]


class MultiWinConflict(BaseModel):
    car_id: int
    car_number: str
    racer_name: str
    awards_won: list[str]
    category_ids: list[int]
    group_id: Optional[int] = None
    group_name: str = ""
    max_wins_per_car: int


class ConflictsResponse(BaseModel):
    ties: list[TieConflict]
    multi_wins: list[MultiWinConflict]


# ---- Ganador manual ----
class OverrideRequest(BaseModel):
    car_id: int
    reason: str


class OverrideInfo(BaseModel):
    category_id: int
    category_name: str
    car_id: int
    car_number: str
    racer_name: str
    reason: str
    overridden_at: Optional[datetime] = None
