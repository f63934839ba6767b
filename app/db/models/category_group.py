# app/db/models/category_group.py
from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, TYPE_CHECKING
from app.db.session import Base

if TYPE_CHECKING:
    from app.db.models.category import Category

class CategoryGroup(Base):
    __tablename__ = "category_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, default="")

    # Categorías que comparten pool son excluyentes para el mismo coche y votante
    exclusivity_pool_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Tope de premios por coche dentro del grupo (None = sin tope)
    max_wins_per_car: Mapped[int | None] = mapped_column(Integer, nullable=True)

    display_order: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    categories: Mapped[List["Category"]] = relationship("Category", back_populates="group")
