from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


# Coches
class CarBase(BaseModel):
    car_number: str
    racer_name: str = ""
    car_name: str = ""
    photo_url: str = ""
    rank: str = ""
    eligible: bool = True


class CarCreate(CarBase):
    pass


class CarUpdate(BaseModel):
    car_number: Optional[str] = None
    racer_name: Optional[str] = None
    car_name: Optional[str] = None
    photo_url: Optional[str] = None
    rank: Optional[str] = None
    eligible: Optional[bool] = None


class CarOut(CarBase):
    id: int
    derbynet_racer_id: Optional[int] = None
    class Config:
        from_attributes = True


class EligibilityUpdate(BaseModel):
    eligible: bool


# Grupos de categorías
class CategoryGroupBase(BaseModel):
    name: str
    description: str = ""
    exclusivity_pool_id: Optional[int] = None
    max_wins_per_car: Optional[int] = Field(default=None, ge=1)
    display_order: int = 0


class CategoryGroupCreate(CategoryGroupBase):
    pass


class CategoryGroupOut(CategoryGroupBase):
    id: int
    active: bool
    class Config:
        from_attributes = True


# Categorías
class CategoryBase(BaseModel):
    name: str
    display_order: int = 0
    group_id: Optional[int] = None
    derbynet_award_id: Optional[int] = None
    active: bool = True
    allowed_voter_types: Optional[list[str]] = None
    allowed_ranks: Optional[list[str]] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryOut(CategoryBase):
    id: int
    override_winner_car_id: Optional[int] = None
    override_reason: Optional[str] = None
    overridden_at: Optional[datetime] = None
    class Config:
        from_attributes = True


# Votantes
class VoterCreate(BaseModel):
    qr_code: Optional[str] = None  # si falta se genera uno
    name: str = ""
    email: str = ""
    voter_type: str = "general"
    car_id: Optional[int] = None
    notes: str = ""


class VoterOut(BaseModel):
    id: int
    qr_code: str
    name: Optional[str] = None
    email: Optional[str] = None
    voter_type: str
    car_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    last_voted_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class GenerateCodesRequest(BaseModel):
    count: int


# Ajustes
class SettingsOut(BaseModel):
    voting_open: bool
    voting_close_time: Optional[str] = None
    require_registered_qr: bool
    voter_types: list[str]
    voting_instructions: str = ""
    derbynet_url: str = ""
    derbynet_role: str = ""
    base_url: str = ""
    derbynet_password_set: bool = False


class SettingsUpdate(BaseModel):
    require_registered_qr: Optional[bool] = None
    voter_types: Optional[list[str]] = None
    voting_instructions: Optional[str] = None
    derbynet_url: Optional[str] = None
    derbynet_role: Optional[str] = None
    derbynet_password: Optional[str] = None
    base_url: Optional[str] = None


class VotingControl(BaseModel):
    open: bool


class VotingTimer(BaseModel):
    minutes: int


# DerbyNet
class SyncResult(BaseModel):
    status: str = "success"
    message: str = ""
    created: int = 0
    updated: int = 0
    pushed: int = 0
    skipped: int = 0
    errors: list[str] = []
    details: list[dict] = []
