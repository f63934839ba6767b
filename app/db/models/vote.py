# app/db/models/vote.py
from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from typing import TYPE_CHECKING
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.car import Car
    from app.db.models.category import Category
    from app.db.models.voter import Voter

class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        # Un votante solo tiene 1 voto por categoría
        UniqueConstraint("voter_id", "category_id", name="uq_voter_category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    voter_id: Mapped[int] = mapped_column(Integer, ForeignKey("voters.id"), nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    car_id: Mapped[int] = mapped_column(Integer, ForeignKey("cars.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    # Relaciones
    voter: Mapped["Voter"] = relationship("Voter", back_populates="votes")
    category: Mapped["Category"] = relationship("Category")
    car: Mapped["Car"] = relationship("Car")
