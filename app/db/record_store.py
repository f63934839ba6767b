"""
Record Store: todas las consultas SQLAlchemy que necesita el motor de votación.

Los métodos no hacen commit. Las escrituras de una operación se agrupan con
``transaction()``, que confirma al final o deshace todo si algo falla.
"Not found" se devuelve como None; cualquier SQLAlchemyError sale como
StorageError.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Iterator, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.db.models.car import Car
from app.db.models.category import Category
from app.db.models.category_group import CategoryGroup
from app.db.models.setting import Setting
from app.db.models.vote import Vote
from app.db.models.voter import Voter
from app.services.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class TallyRow:
    """Votos de un coche en una categoría, con los datos del coche ya unidos."""

    category_id: int
    car_id: int
    car_number: str
    car_name: str
    racer_name: str
    photo_url: str
    vote_count: int


def _storage_errors(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise StorageError(f"{fn.__name__} failed: {exc}") from exc

    return wrapper


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        try:
            yield self
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Transaction rolled back: %s", exc)
            raise StorageError(f"transaction failed: {exc}") from exc
        except Exception:
            self.db.rollback()
            raise

    # ==================== Votantes ====================

    @_storage_errors
    def get_voter_by_code(self, qr_code: str) -> Optional[Voter]:
        return self.db.scalars(select(Voter).where(Voter.qr_code == qr_code)).first()

    @_storage_errors
    def get_voter(self, voter_id: int) -> Optional[Voter]:
        return self.db.get(Voter, voter_id)

    @_storage_errors
    def create_voter(self, qr_code: str, **fields) -> Voter:
        voter = Voter(qr_code=qr_code, **fields)
        self.db.add(voter)
        self.db.flush()
        return voter

    @_storage_errors
    def voter_votes(self, voter_id: int) -> dict[int, int]:
        rows = self.db.execute(
            select(Vote.category_id, Vote.car_id).where(Vote.voter_id == voter_id)
        ).all()
        return {category_id: car_id for category_id, car_id in rows}

    @_storage_errors
    def list_voters(self) -> list[Voter]:
        return list(self.db.scalars(select(Voter).order_by(Voter.id)))

    @_storage_errors
    def delete_voter(self, voter_id: int) -> bool:
        voter = self.db.get(Voter, voter_id)
        if not voter:
            return False
        self.db.delete(voter)
        self.db.flush()
        return True

    # ==================== Coches ====================

    @_storage_errors
    def get_car(self, car_id: int) -> Optional[Car]:
        car = self.db.get(Car, car_id)
        if car is None or not car.active:
            return None
        return car

    @_storage_errors
    def list_cars(self, eligible_only: bool = False) -> list[Car]:
        stmt = select(Car).where(Car.active.is_(True))
        if eligible_only:
            stmt = stmt.where(Car.eligible.is_(True))
        return list(self.db.scalars(stmt.order_by(Car.car_number, Car.id)))

    @_storage_errors
    def get_car_by_derbynet_id(self, racer_id: int) -> Optional[Car]:
        return self.db.scalars(select(Car).where(Car.derbynet_racer_id == racer_id)).first()

    @_storage_errors
    def upsert_car_from_derbynet(self, racer_id: int, **fields) -> tuple[Car, bool]:
        """Crea o actualiza el coche enlazado al racer. Devuelve (coche, creado)."""
        car = self.get_car_by_derbynet_id(racer_id)
        created = car is None
        if created:
            car = Car(derbynet_racer_id=racer_id)
            self.db.add(car)
        for key, value in fields.items():
            setattr(car, key, value)
        car.active = True
        car.synced_at = utc_now()
        self.db.flush()
        return car, created

    # ==================== Categorías ====================

    @_storage_errors
    def list_categories(self, include_inactive: bool = False) -> list[Category]:
        stmt = select(Category).options(joinedload(Category.group))
        if not include_inactive:
            stmt = stmt.where(Category.active.is_(True))
        return list(self.db.scalars(stmt.order_by(Category.display_order, Category.id)))

    @_storage_errors
    def get_category(self, category_id: int) -> Optional[Category]:
        category = self.db.get(Category, category_id)
        if category is None or not category.active:
            return None
        return category

    @_storage_errors
    def list_category_groups(self, include_inactive: bool = False) -> list[CategoryGroup]:
        stmt = select(CategoryGroup)
        if not include_inactive:
            stmt = stmt.where(CategoryGroup.active.is_(True))
        return list(self.db.scalars(stmt.order_by(CategoryGroup.display_order, CategoryGroup.id)))

    @_storage_errors
    def upsert_category_from_award(self, award_id: int, name: str, display_order: int) -> tuple[Category, bool]:
        """Enlaza por award id y, si no, por nombre. Devuelve (categoría, creada)."""
        category = self.db.scalars(
            select(Category).where(Category.derbynet_award_id == award_id)
        ).first()
        if category is None:
            category = self.db.scalars(select(Category).where(Category.name == name)).first()
        created = category is None
        if created:
            category = Category(name=name, display_order=display_order, active=True)
            self.db.add(category)
        category.name = name
        category.derbynet_award_id = award_id
        self.db.flush()
        return category, created

    @_storage_errors
    def delete_category(self, category_id: int) -> bool:
        category = self.db.get(Category, category_id)
        if not category:
            return False
        self.db.execute(delete(Vote).where(Vote.category_id == category_id))
        self.db.delete(category)
        self.db.flush()
        return True

    # ==================== Votos ====================

    @_storage_errors
    def get_exclusivity_pool_id(self, category_id: int) -> Optional[int]:
        return self.db.scalar(
            select(CategoryGroup.exclusivity_pool_id)
            .select_from(Category)
            .outerjoin(CategoryGroup, Category.group_id == CategoryGroup.id)
            .where(Category.id == category_id)
        )

    @_storage_errors
    def find_conflicting_vote(
        self, voter_id: int, car_id: int, category_id: int, pool_id: int
    ) -> Optional[tuple[int, str]]:
        """Voto del mismo votante al mismo coche en otra categoría del pool."""
        row = self.db.execute(
            select(Vote.category_id, Category.name)
            .join(Category, Vote.category_id == Category.id)
            .join(CategoryGroup, Category.group_id == CategoryGroup.id)
            .where(
                Vote.voter_id == voter_id,
                Vote.car_id == car_id,
                Vote.category_id != category_id,
                CategoryGroup.exclusivity_pool_id == pool_id,
            )
            .order_by(Vote.category_id)
            .limit(1)
        ).first()
        if row is None:
            return None
        return row[0], row[1]

    @_storage_errors
    def clear_vote(self, voter_id: int, category_id: int, car_id: int) -> None:
        self.db.execute(
            delete(Vote).where(
                Vote.voter_id == voter_id,
                Vote.category_id == category_id,
                Vote.car_id == car_id,
            )
        )

    @_storage_errors
    def save_vote(self, voter_id: int, category_id: int, car_id: int) -> None:
        now = utc_now()
        vote = self.db.scalars(
            select(Vote).where(Vote.voter_id == voter_id, Vote.category_id == category_id)
        ).first()
        if vote:
            vote.car_id = car_id
            vote.updated_at = now
        else:
            self.db.add(Vote(
                voter_id=voter_id,
                category_id=category_id,
                car_id=car_id,
                created_at=now,
                updated_at=now,
            ))
        self.db.execute(update(Voter).where(Voter.id == voter_id).values(last_voted_at=now))
        self.db.flush()

    @_storage_errors
    def delete_vote(self, voter_id: int, category_id: int) -> int:
        result = self.db.execute(
            delete(Vote).where(Vote.voter_id == voter_id, Vote.category_id == category_id)
        )
        return result.rowcount or 0

    @_storage_errors
    def vote_tallies(self) -> list[TallyRow]:
        """Recuento por (categoría, coche); solo coches con al menos un voto."""
        vote_count = func.count(Vote.id).label("vote_count")
        rows = self.db.execute(
            select(
                Vote.category_id,
                Car.id,
                Car.car_number,
                Car.car_name,
                Car.racer_name,
                Car.photo_url,
                vote_count,
            )
            .join(Car, Vote.car_id == Car.id)
            .group_by(Vote.category_id, Car.id)
            .order_by(Vote.category_id, vote_count.desc(), Car.id)
        ).all()
        return [
            TallyRow(
                category_id=row[0],
                car_id=row[1],
                car_number=row[2] or "",
                car_name=row[3] or "",
                racer_name=row[4] or "",
                photo_url=row[5] or "",
                vote_count=row[6],
            )
            for row in rows
        ]

    @_storage_errors
    def voting_stats(self) -> dict[str, int]:
        count = lambda stmt: self.db.scalar(stmt) or 0  # noqa: E731
        return {
            "total_voters": count(select(func.count(Voter.id))),
            "voters_who_voted": count(select(func.count(func.distinct(Vote.voter_id)))),
            "total_votes": count(select(func.count(Vote.id))),
            "total_categories": count(select(func.count(Category.id)).where(Category.active.is_(True))),
            "total_cars": count(select(func.count(Car.id)).where(Car.active.is_(True))),
        }

    # ==================== Ganador manual ====================

    @_storage_errors
    def set_manual_winner(self, category_id: int, car_id: int, reason: str) -> None:
        self.db.execute(
            update(Category)
            .where(Category.id == category_id)
            .values(override_winner_car_id=car_id, override_reason=reason, overridden_at=utc_now())
        )

    @_storage_errors
    def clear_manual_winner(self, category_id: int) -> None:
        self.db.execute(
            update(Category)
            .where(Category.id == category_id)
            .values(override_winner_car_id=None, override_reason=None, overridden_at=None)
        )

    # ==================== Settings ====================

    @_storage_errors
    def get_setting(self, key: str) -> Optional[str]:
        setting = self.db.get(Setting, key)
        return setting.value if setting else None

    @_storage_errors
    def set_setting(self, key: str, value: str) -> None:
        self.db.merge(Setting(key=key, value=value))
        self.db.flush()
