"""
Códigos de votante y alta de votantes desde el panel.

Los códigos impresos usan un alfabeto sin caracteres ambiguos (sin 0/O, 1/I/L)
y el formato ``XX-YYY``.
"""
import hashlib
import logging
import secrets
import time

from app.db.models.voter import Voter
from app.db.record_store import RecordStore
from app.schemas.admin import VoterCreate
from app.services.errors import ValidationError
from app.services.settings import SettingsService

logger = logging.getLogger(__name__)

CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
CODE_LENGTH = 5
MAX_BULK_CODES = 200
MAX_CODE_ATTEMPTS = 10


def generate_readable_code(seed: str) -> str:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    num = int.from_bytes(digest[:8], "big")

    chars = []
    for _ in range(CODE_LENGTH):
        num, index = divmod(num, len(CODE_ALPHABET))
        chars.append(CODE_ALPHABET[index])

    code = "".join(chars)
    return f"{code[:2]}-{code[2:]}"


def _unused_code(store: RecordStore, seed: str, taken: set[str]) -> str:
    for attempt in range(MAX_CODE_ATTEMPTS):
        code = generate_readable_code(seed if attempt == 0 else f"{seed}-{attempt}")
        if code not in taken and store.get_voter_by_code(code) is None:
            return code
    raise ValidationError(f"could not generate an unused code after {MAX_CODE_ATTEMPTS} attempts")


def create_voter(store: RecordStore, data: VoterCreate) -> Voter:
    qr_code = (data.qr_code or "").strip()
    with store.transaction():
        if not qr_code:
            qr_code = _unused_code(store, f"voter-{time.time_ns()}-{data.name}", set())
        elif store.get_voter_by_code(qr_code) is not None:
            raise ValidationError("QR code already registered")

        voter = store.create_voter(
            qr_code,
            car_id=data.car_id,
            name=data.name,
            email=data.email,
            voter_type=data.voter_type or "general",
            notes=data.notes,
        )
    logger.info("Created voter %s (%s)", voter.id, voter.voter_type)
    return voter


def generate_codes(store: RecordStore, count: int) -> list[str]:
    """Crea ``count`` votantes nuevos (1..200) y devuelve sus códigos."""
    if count < 1 or count > MAX_BULK_CODES:
        raise ValidationError(f"count must be between 1 and {MAX_BULK_CODES}")

    timestamp = time.time_ns()
    codes: list[str] = []
    with store.transaction():
        for i in range(count):
            code = _unused_code(store, f"bulk-{timestamp}-{i}", set(codes))
            store.create_voter(code, voter_type="general")
            codes.append(code)

    logger.info("Generated %d voter codes", len(codes))
    return codes


def generate_open_code(store: RecordStore, settings: SettingsService | None = None) -> str:
    """Código aleatorio para votar sin registro previo (no crea el votante)."""
    settings = settings or SettingsService(store)
    if settings.require_registered_qr():
        raise ValidationError("open voting is disabled, codes must be pre-registered")

    for _ in range(MAX_CODE_ATTEMPTS):
        code = secrets.token_hex(4)
        if store.get_voter_by_code(code) is None:
            return code
    raise ValidationError(f"could not generate an unused code after {MAX_CODE_ATTEMPTS} attempts")
