"""
Envío de votos con resolución de exclusividad entre categorías.

Un votante tiene como mucho un voto por categoría. Dentro de un pool de
exclusividad, el mismo coche sólo puede tener su voto en una categoría: votar
al coche en otra categoría del pool mueve el voto en vez de rechazarlo.
"""
import logging

from app.db.models.voter import Voter
from app.db.record_store import RecordStore
from app.schemas.voting import VoteCar, VoteCategory, VoteData, VoteResult
from app.services.errors import (
    CategoryNotFound,
    EntrantNotEligible,
    EntrantNotFound,
    UnregisteredCode,
    ValidationError,
    VotingClosed,
)
from app.services.settings import SettingsService, VOTING_INSTRUCTIONS

logger = logging.getLogger(__name__)


def category_visible_to(category, voter_type: str) -> bool:
    # Sin restricción, la categoría es para todos
    if not category.allowed_voter_types:
        return True
    return voter_type in category.allowed_voter_types


class VotingService:
    def __init__(self, store: RecordStore, settings: SettingsService | None = None):
        self.store = store
        self.settings = settings or SettingsService(store)

    def get_or_create_voter(self, voter_code: str) -> Voter:
        """Devuelve el votante del código; lo crea si el registro es abierto.

        No hace commit: se llama dentro de la transacción del que la usa.
        """
        voter_code = (voter_code or "").strip()
        if not voter_code:
            raise ValidationError("voter code is required")

        voter = self.store.get_voter_by_code(voter_code)
        if voter:
            return voter

        if self.settings.require_registered_qr():
            raise UnregisteredCode()

        voter = self.store.create_voter(voter_code, voter_type="general")
        logger.info("Created voter %s for new code", voter.id)
        return voter

    def submit_vote(self, voter_code: str, category_id: int, car_id: int) -> VoteResult:
        if not self.settings.is_voting_open():
            raise VotingClosed()

        conflict = None
        with self.store.transaction():
            voter = self.get_or_create_voter(voter_code)

            # car_id == 0 -> quitar el voto de esta categoría
            if not car_id:
                self.store.delete_vote(voter.id, category_id)
                logger.info("Vote cleared voter=%s category=%s", voter.id, category_id)
                return VoteResult(message="Vote cleared")

            car = self.store.get_car(car_id)
            if car is None:
                raise EntrantNotFound()
            if not car.eligible:
                raise EntrantNotEligible()
            if self.store.get_category(category_id) is None:
                raise CategoryNotFound()

            pool_id = self.store.get_exclusivity_pool_id(category_id)
            if pool_id is not None:
                conflict = self.store.find_conflicting_vote(voter.id, car_id, category_id, pool_id)
                if conflict:
                    self.store.clear_vote(voter.id, conflict[0], car_id)
                    logger.info(
                        "Cleared conflicting vote voter=%s category=%s car=%s",
                        voter.id, conflict[0], car_id,
                    )

            self.store.save_vote(voter.id, category_id, car_id)

        logger.info("Vote recorded voter=%s category=%s car=%s", voter.id, category_id, car_id)

        if conflict:
            return VoteResult(
                message="Vote recorded",
                conflict_cleared=True,
                conflict_category_id=conflict[0],
                conflict_category_name=conflict[1],
            )
        return VoteResult(message="Vote recorded")

    def get_vote_data(self, voter_code: str) -> VoteData:
        """Todo lo que necesita la pantalla de votación de un votante."""
        with self.store.transaction():
            voter = self.get_or_create_voter(voter_code)
            voter_id = voter.id
            voter_type = voter.voter_type or "general"

        categories = [
            VoteCategory(
                id=c.id,
                name=c.name,
                display_order=c.display_order,
                group_id=c.group_id,
                group_name=c.group.name if c.group else None,
                allowed_ranks=c.allowed_ranks or None,
            )
            for c in self.store.list_categories()
            if category_visible_to(c, voter_type)
        ]
        cars = [VoteCar.model_validate(car) for car in self.store.list_cars(eligible_only=True)]
        instructions = self.store.get_setting(VOTING_INSTRUCTIONS) or None

        return VoteData(
            voter_id=voter_id,
            voter_type=voter_type,
            voting_open=self.settings.is_voting_open(),
            instructions=instructions,
            categories=categories,
            cars=cars,
            votes=self.store.voter_votes(voter_id),
        )
