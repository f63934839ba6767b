"""
Sincronización con DerbyNet (gestión de carreras).

- Racers -> coches (y un votante "racer" por coche)
- Awards <-> categorías (se traen las de DerbyNet y se crean allí las locales)
- Ganadores finales -> award winners

Los fallos remotos no lanzan excepción: se devuelven en el SyncResult con
status "error" o "partial".
"""
import logging
from typing import Any, Optional

import httpx

from app.db.record_store import RecordStore
from app.schemas.admin import SyncResult
from app.services.results import ResultsService
from app.services.settings import (
    DERBYNET_PASSWORD,
    DERBYNET_ROLE,
    DERBYNET_URL,
    SettingsService,
)
from app.services.voters import generate_readable_code

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_AWARD_TYPE_ID = 1


class DerbyNetError(Exception):
    pass


class DerbyNetAuthError(DerbyNetError):
    pass


class DerbyNetClient:
    """Cliente de ``action.php``: consultas por GET y acciones por POST de formulario."""

    def __init__(
        self,
        base_url: str,
        role: str = "",
        password: str = "",
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not base_url:
            raise DerbyNetError("DerbyNet URL is not configured")
        self.base_url = base_url.strip().rstrip("/")
        self.role = role
        self.password = password
        self.authenticated = False
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DerbyNetClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def action_url(self) -> str:
        return f"{self.base_url}/action.php"

    # ---- HTTP ----

    def _payload(self, response: httpx.Response) -> dict[str, Any]:
        if response.status_code != 200:
            raise DerbyNetError(f"DerbyNet returned status {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise DerbyNetError("DerbyNet returned an invalid JSON response") from exc
        if not isinstance(payload, dict):
            raise DerbyNetError(f"unexpected DerbyNet payload: {type(payload).__name__}")
        return payload

    def _query(self, query: str, **params: Any) -> dict[str, Any]:
        logger.debug("DerbyNet GET query=%s", query)
        try:
            response = self._client.get(self.action_url, params={"query": query, **params})
        except httpx.HTTPError as exc:
            raise DerbyNetError(f"failed to connect to DerbyNet: {exc}") from exc
        return self._payload(response)

    def _action(self, action: str, data: dict[str, Any], retry: bool = True) -> dict[str, Any]:
        if not self.authenticated and self.role and self.password:
            self.login(self.role, self.password)

        logger.debug("DerbyNet POST action=%s", action)
        try:
            response = self._client.post(self.action_url, data={"action": action, **data})
        except httpx.HTTPError as exc:
            raise DerbyNetError(f"failed to connect to DerbyNet: {exc}") from exc
        payload = self._payload(response)

        outcome = payload.get("outcome") or {}
        if outcome.get("code") == "notauthorized":
            # Sesión caducada: un único reintento tras volver a entrar
            if retry and self.role and self.password:
                logger.info("DerbyNet session not authorized, logging in again")
                self.authenticated = False
                self.login(self.role, self.password)
                return self._action(action, data, retry=False)
            raise DerbyNetAuthError(
                f"DerbyNet error: {outcome.get('description', '')} (notauthorized)"
            )
        if outcome.get("summary") == "failure":
            raise DerbyNetError(
                f"DerbyNet error: {outcome.get('description', '')} ({outcome.get('code', '')})"
            )
        return payload

    # ---- API ----

    def login(self, role: str, password: str) -> None:
        try:
            response = self._client.post(
                self.action_url,
                data={"action": "role.login", "name": role, "password": password},
            )
        except httpx.HTTPError as exc:
            raise DerbyNetError(f"failed to connect to DerbyNet: {exc}") from exc
        outcome = self._payload(response).get("outcome") or {}
        if outcome.get("summary") == "failure":
            raise DerbyNetAuthError(
                f"DerbyNet login failed: {outcome.get('description', '')} ({outcome.get('code', '')})"
            )
        self.role = role
        self.password = password
        self.authenticated = True
        logger.info("DerbyNet login successful role=%s", role)

    def fetch_racers(self) -> list[dict[str, Any]]:
        racers = self._query("racer.list", render="200x200").get("racers") or []
        return [r for r in racers if isinstance(r, dict)]

    def fetch_awards(self) -> list[dict[str, Any]]:
        awards = self._query("award.list").get("awards") or []
        return [a for a in awards if isinstance(a, dict)]

    def fetch_award_types(self) -> list[dict[str, Any]]:
        types = self._query("award.list").get("award-types") or []
        return [t for t in types if isinstance(t, dict)]

    def create_award(self, name: str, award_type_id: int) -> int:
        payload = self._action(
            "award.edit", {"awardid": "new", "name": name, "awardtypeid": award_type_id}
        )
        for award in payload.get("awards") or []:
            if award.get("awardname") == name:
                return int(award["awardid"])
        raise DerbyNetError(f"award {name!r} created but its id was not in the response")

    def set_award_winner(self, award_id: int, racer_id: int) -> None:
        self._action("award.winner", {"awardid": award_id, "racerid": racer_id})


def client_from_settings(settings: SettingsService, base_url: str = "") -> DerbyNetClient:
    return DerbyNetClient(
        base_url or settings.get(DERBYNET_URL),
        role=settings.get(DERBYNET_ROLE),
        password=settings.get(DERBYNET_PASSWORD),
    )


def _text(value: Any) -> str:
    # DerbyNet a veces manda números donde esperamos texto
    if value is None:
        return ""
    return str(value).strip()


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _photo_url(base_url: str, car_photo: Any) -> str:
    path = _text(car_photo)
    if not path:
        return ""
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


# ---- 1. Racers -> coches ----
def sync_cars(store: RecordStore, client: DerbyNetClient) -> SyncResult:
    try:
        racers = client.fetch_racers()
    except DerbyNetError as exc:
        logger.warning("DerbyNet racer fetch failed: %s", exc)
        return SyncResult(status="error", message=f"Failed to fetch from DerbyNet: {exc}")

    logger.info("Fetched %d racers from DerbyNet", len(racers))
    result = SyncResult()
    voters_created = 0

    with store.transaction():
        for racer in racers:
            try:
                racer_id = int(racer["racerid"])
            except (KeyError, TypeError, ValueError):
                result.errors.append(f"racer without a valid racerid: {racer!r}")
                continue

            racer_name = f"{_text(racer.get('firstname'))} {_text(racer.get('lastname'))}".strip()
            car, created = store.upsert_car_from_derbynet(
                racer_id,
                car_number=_text(racer.get("carnumber")),
                racer_name=racer_name,
                car_name=_text(racer.get("carname")),
                photo_url=_photo_url(client.base_url, racer.get("car_photo")),
                rank=_text(racer.get("rank")),
            )
            if created:
                result.created += 1
            else:
                result.updated += 1

            # Cada corredor vota con su propio código
            qr_code = generate_readable_code(f"car-{racer_id}-{car.id}")
            voter = store.get_voter_by_code(qr_code)
            if voter is None:
                store.create_voter(qr_code, car_id=car.id, name=racer_name, voter_type="racer")
                voters_created += 1
            else:
                voter.car_id = car.id
                voter.name = racer_name

    result.message = (
        f"{result.created} cars created, {result.updated} updated, "
        f"{voters_created} racer voters created"
    )
    if result.errors:
        result.status = "partial"
    logger.info("DerbyNet car sync complete: %s", result.message)
    return result


# ---- 2. Awards <-> categorías ----
def sync_categories(store: RecordStore, client: DerbyNetClient) -> SyncResult:
    try:
        awards = client.fetch_awards()
    except DerbyNetError as exc:
        logger.warning("DerbyNet award fetch failed: %s", exc)
        return SyncResult(status="error", message=f"Failed to fetch awards from DerbyNet: {exc}")

    logger.info("Fetched %d awards from DerbyNet", len(awards))
    result = SyncResult()
    award_ids_by_name: dict[str, int] = {}

    with store.transaction():
        for award in awards:
            try:
                award_id = int(award["awardid"])
            except (KeyError, TypeError, ValueError):
                result.errors.append(f"award without a valid awardid: {award!r}")
                continue
            name = _text(award.get("awardname"))
            award_ids_by_name[name] = award_id
            display_order = _int(award.get("sort")) or award_id

            _, created = store.upsert_category_from_award(award_id, name, display_order)
            if created:
                result.created += 1
            else:
                result.updated += 1

    # Categorías locales que DerbyNet no conoce todavía
    unlinked = [c for c in store.list_categories() if c.derbynet_award_id is None]
    if unlinked:
        try:
            types = client.fetch_award_types()
        except DerbyNetError as exc:
            logger.warning("Could not fetch award types, using default: %s", exc)
            types = []
        award_type_id = int(types[0].get("awardtypeid", DEFAULT_AWARD_TYPE_ID)) if types else DEFAULT_AWARD_TYPE_ID

        for category in unlinked:
            award_id = award_ids_by_name.get(category.name)
            if award_id is None:
                try:
                    award_id = client.create_award(category.name, award_type_id)
                except DerbyNetError as exc:
                    logger.warning("Could not create award for %r: %s", category.name, exc)
                    result.errors.append(f"{category.name}: {exc}")
                    continue
                result.pushed += 1
            with store.transaction():
                store.upsert_category_from_award(award_id, category.name, category.display_order)

    if result.errors:
        result.status = "partial"
    result.message = (
        f"{result.created} categories created, {result.updated} updated, "
        f"{result.pushed} awards created in DerbyNet"
    )
    logger.info("DerbyNet category sync complete: %s", result.message)
    return result


# ---- 3. Ganadores -> DerbyNet ----
def push_results(results: ResultsService, store: RecordStore, client: DerbyNetClient) -> SyncResult:
    winners = results.compute_final_winners()
    if not winners:
        return SyncResult(message="No winners to push (no votes recorded)")

    logger.info("Pushing %d winners to DerbyNet", len(winners))
    result = SyncResult()

    for winner in winners:
        detail = {"category_name": winner.category_name}
        category = store.get_category(winner.category_id)
        car = store.get_car(winner.car_id)

        if category is None or category.derbynet_award_id is None:
            detail.update(status="skipped", message="Category not linked to DerbyNet (sync categories first)")
            result.skipped += 1
        elif car is None or car.derbynet_racer_id is None:
            detail.update(status="skipped", message="Winning car not linked to DerbyNet (sync cars first)")
            result.skipped += 1
        else:
            try:
                client.set_award_winner(category.derbynet_award_id, car.derbynet_racer_id)
            except DerbyNetError as exc:
                logger.warning(
                    "Error pushing winner category=%r award=%s racer=%s: %s",
                    winner.category_name, category.derbynet_award_id, car.derbynet_racer_id, exc,
                )
                detail.update(status="error", message=str(exc))
                result.errors.append(f"{winner.category_name}: {exc}")
            else:
                detail.update(status="success")
                result.pushed += 1
        result.details.append(detail)

    if result.errors:
        result.status = "partial"
        result.message = (
            f"{result.pushed} winners pushed, {result.skipped} skipped, {len(result.errors)} errors"
        )
    elif result.skipped:
        result.message = (
            f"{result.pushed} winners pushed, {result.skipped} skipped (missing DerbyNet links)"
        )
    else:
        result.message = f"{result.pushed} winners pushed"
    return result
