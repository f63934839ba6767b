# app/db/models/category.py
from datetime import datetime
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.car import Car
    from app.db.models.category_group import CategoryGroup

class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False) # Ej: "Best Design"
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    group_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("category_groups.id", ondelete="SET NULL"), nullable=True
    )
    derbynet_award_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    # None = cualquiera puede votar
    allowed_voter_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    allowed_ranks: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    # --- GANADOR MANUAL ---
    # Los tres campos van siempre juntos: o están todos o ninguno
    override_winner_car_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("cars.id", ondelete="SET NULL"), nullable=True
    )
    override_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    overridden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relaciones
    group: Mapped["CategoryGroup | None"] = relationship("CategoryGroup", back_populates="categories")
    override_car: Mapped["Car | None"] = relationship("Car")
