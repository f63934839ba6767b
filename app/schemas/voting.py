from pydantic import BaseModel
from typing import Optional


class VoteSubmitRequest(BaseModel):
    voter_qr: str
    category_id: int
    car_id: int = 0  # 0 = quitar la selección


class VoteResult(BaseModel):
    status: str = "success"
    message: str
    conflict_cleared: bool = False
    conflict_category_id: Optional[int] = None
    conflict_category_name: Optional[str] = None


# Lo que ve el votante al escanear su código
class VoteCategory(BaseModel):
    id: int
    name: str
    display_order: int
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    allowed_ranks: Optional[list[str]] = None

    class Config:
        from_attributes = True


class VoteCar(BaseModel):
    id: int
    car_number: str
    racer_name: str
    car_name: str
    photo_url: str
    rank: str

    class Config:
        from_attributes = True


class VoteData(BaseModel):
    voter_id: int
    voter_type: str
    voting_open: bool
    instructions: Optional[str] = None
    categories: list[VoteCategory]
    cars: list[VoteCar]
    votes: dict[int, int]
