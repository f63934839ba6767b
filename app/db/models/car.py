# app/db/models/car.py
from datetime import datetime
from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from app.db.session import Base

class Car(Base):
    __tablename__ = "cars"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # ID del racer en DerbyNet (solo si viene de una sincronización)
    derbynet_racer_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    car_number: Mapped[str] = mapped_column(String, nullable=False) # Ej: "104"
    racer_name: Mapped[str] = mapped_column(String, default="")
    car_name: Mapped[str] = mapped_column(String, default="")
    photo_url: Mapped[str] = mapped_column(String, default="")
    rank: Mapped[str] = mapped_column(String, default="") # Ej: "Tiger", "Bear"

    # Un coche no elegible no puede recibir votos nuevos
    eligible: Mapped[bool] = mapped_column(Boolean, default=True)
    # Borrado lógico
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
