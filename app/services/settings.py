"""
Ajustes de ejecución guardados en la tabla ``settings`` (clave -> texto).
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.db.record_store import RecordStore
from app.schemas.admin import SettingsOut, SettingsUpdate
from app.services.errors import ValidationError

logger = logging.getLogger(__name__)

VOTING_OPEN = "voting_open"
VOTING_CLOSE_TIME = "voting_close_time"
REQUIRE_REGISTERED_QR = "require_registered_qr"
VOTER_TYPES = "voter_types"
VOTING_INSTRUCTIONS = "voting_instructions"
DERBYNET_URL = "derbynet_url"
DERBYNET_ROLE = "derbynet_role"
DERBYNET_PASSWORD = "derbynet_password"
BASE_URL = "base_url"

DEFAULT_VOTER_TYPES = ["general", "racer", "Race Committee", "Cubmaster"]
REQUIRED_VOTER_TYPES = ["general", "racer"]

TIMER_MIN_MINUTES = 1
TIMER_MAX_MINUTES = 60


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() == "true"


def _with_required_types(types: list[str]) -> list[str]:
    cleaned = []
    for voter_type in types:
        voter_type = voter_type.strip()
        if voter_type and voter_type not in cleaned:
            cleaned.append(voter_type)
    return REQUIRED_VOTER_TYPES + [t for t in cleaned if t not in REQUIRED_VOTER_TYPES]


class SettingsService:
    def __init__(self, store: RecordStore):
        self.store = store

    # ---- Ventana de votación ----

    def voting_close_time(self) -> Optional[datetime]:
        raw = self.store.get_setting(VOTING_CLOSE_TIME)
        if not raw:
            return None
        try:
            close_time = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparseable %s=%r", VOTING_CLOSE_TIME, raw)
            return None
        if close_time.tzinfo is None:
            close_time = close_time.replace(tzinfo=timezone.utc)
        return close_time

    def is_voting_open(self) -> bool:
        # Sin valor guardado la votación está abierta
        if not _as_bool(self.store.get_setting(VOTING_OPEN), True):
            return False
        close_time = self.voting_close_time()
        if close_time and datetime.now(timezone.utc) >= close_time:
            return False
        return True

    def open_voting(self) -> None:
        with self.store.transaction():
            self.store.set_setting(VOTING_OPEN, "true")
            self.store.set_setting(VOTING_CLOSE_TIME, "")
        logger.info("Voting opened")

    def close_voting(self) -> None:
        with self.store.transaction():
            self.store.set_setting(VOTING_OPEN, "false")
            self.store.set_setting(VOTING_CLOSE_TIME, "")
        logger.info("Voting closed")

    def start_voting_timer(self, minutes: int) -> datetime:
        if not TIMER_MIN_MINUTES <= minutes <= TIMER_MAX_MINUTES:
            raise ValidationError(
                f"minutes must be between {TIMER_MIN_MINUTES} and {TIMER_MAX_MINUTES}"
            )
        close_time = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        with self.store.transaction():
            self.store.set_setting(VOTING_OPEN, "true")
            self.store.set_setting(VOTING_CLOSE_TIME, close_time.isoformat())
        logger.info("Voting timer started, closes at %s", close_time.isoformat())
        return close_time

    # ---- Registro de votantes ----

    def require_registered_qr(self) -> bool:
        return _as_bool(self.store.get_setting(REQUIRE_REGISTERED_QR), False)

    def voter_types(self) -> list[str]:
        raw = self.store.get_setting(VOTER_TYPES)
        if not raw:
            return list(DEFAULT_VOTER_TYPES)
        try:
            types = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed %s setting", VOTER_TYPES)
            return list(DEFAULT_VOTER_TYPES)
        if not isinstance(types, list):
            return list(DEFAULT_VOTER_TYPES)
        return _with_required_types([str(t) for t in types])

    def set_voter_types(self, types: list[str]) -> list[str]:
        types = _with_required_types(types)
        with self.store.transaction():
            self.store.set_setting(VOTER_TYPES, json.dumps(types))
        return types

    # ---- Todo junto (panel admin) ----

    def get(self, key: str, default: str = "") -> str:
        value = self.store.get_setting(key)
        return default if value is None else value

    def all_settings(self) -> SettingsOut:
        close_time = self.voting_close_time()
        return SettingsOut(
            voting_open=self.is_voting_open(),
            voting_close_time=close_time.isoformat() if close_time else None,
            require_registered_qr=self.require_registered_qr(),
            voter_types=self.voter_types(),
            voting_instructions=self.get(VOTING_INSTRUCTIONS),
            derbynet_url=self.get(DERBYNET_URL),
            derbynet_role=self.get(DERBYNET_ROLE),
            base_url=self.get(BASE_URL),
            derbynet_password_set=bool(self.get(DERBYNET_PASSWORD)),
        )

    def update_settings(self, update: SettingsUpdate) -> SettingsOut:
        values = update.model_dump(exclude_unset=True, exclude_none=True)
        with self.store.transaction():
            if "require_registered_qr" in values:
                self.store.set_setting(
                    REQUIRE_REGISTERED_QR, "true" if values.pop("require_registered_qr") else "false"
                )
            if "voter_types" in values:
                types = _with_required_types(values.pop("voter_types"))
                self.store.set_setting(VOTER_TYPES, json.dumps(types))
            for key, value in values.items():
                self.store.set_setting(key, value if key == DERBYNET_PASSWORD else value.strip())
        return self.all_settings()
