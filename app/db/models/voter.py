# app/db/models/voter.py
from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from typing import List, TYPE_CHECKING
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.car import Car
    from app.db.models.vote import Vote

class Voter(Base):
    __tablename__ = "voters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Si el votante es un corredor, su coche
    car_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("cars.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String, default="")
    email: Mapped[str] = mapped_column(String, default="")
    voter_type: Mapped[str] = mapped_column(String, default="general")
    # Código del QR (ej: "7K-M3Q")
    qr_code: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    notes: Mapped[str] = mapped_column(String, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_voted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relaciones
    car: Mapped["Car | None"] = relationship("Car")
    votes: Mapped[List["Vote"]] = relationship("Vote", back_populates="voter", cascade="all, delete-orphan")
