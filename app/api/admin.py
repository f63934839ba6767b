from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_store, require_admin
from app.db.models.car import Car
from app.db.models.category import Category
from app.db.models.category_group import CategoryGroup
from app.db.record_store import RecordStore
from app.schemas.admin import (
    CarCreate,
    CarOut,
    CarUpdate,
    CategoryCreate,
    CategoryGroupCreate,
    CategoryGroupOut,
    CategoryOut,
    EligibilityUpdate,
    GenerateCodesRequest,
    SettingsOut,
    SettingsUpdate,
    VoterCreate,
    VoterOut,
    VotingControl,
    VotingTimer,
)
from app.services import voters as voters_service
from app.services.settings import SettingsService

router = APIRouter(prefix="/admin", tags=["Admin"])


# -----------------------
# Coches
# -----------------------
@router.get("/cars", response_model=list[CarOut])
def list_cars(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return store.list_cars()


@router.post("/cars", response_model=CarOut)
def create_car(car: CarCreate, db: Session = Depends(get_db), current_user = Depends(require_admin)):
    new_car = Car(**car.model_dump())
    db.add(new_car)
    db.commit()
    db.refresh(new_car)
    return new_car


@router.get("/cars/{car_id}", response_model=CarOut)
def get_car(car_id: int, store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    car = store.get_car(car_id)
    if not car:
        raise HTTPException(404, "Coche no encontrado")
    return car


@router.patch("/cars/{car_id}", response_model=CarOut)
def update_car(
    car_id: int,
    car_data: CarUpdate,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    car = store.get_car(car_id)
    if not car:
        raise HTTPException(404, "Coche no encontrado")

    for field, value in car_data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(car, field, value)

    store.db.commit()
    store.db.refresh(car)
    return car


@router.patch("/cars/{car_id}/eligibility", response_model=CarOut)
def set_car_eligibility(
    car_id: int,
    data: EligibilityUpdate,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    car = store.get_car(car_id)
    if not car:
        raise HTTPException(404, "Coche no encontrado")
    car.eligible = data.eligible
    store.db.commit()
    store.db.refresh(car)
    return car


@router.delete("/cars/{car_id}")
def delete_car(car_id: int, store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    car = store.get_car(car_id)
    if not car:
        raise HTTPException(404, "Coche no encontrado")
    # Borrado lógico: los votos históricos siguen apuntando al coche
    car.active = False
    store.db.commit()
    return {"message": "Coche eliminado"}


# -----------------------
# Grupos de categorías
# -----------------------
@router.get("/category-groups", response_model=list[CategoryGroupOut])
def list_category_groups(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return store.list_category_groups()


@router.post("/category-groups", response_model=CategoryGroupOut)
def create_category_group(
    group: CategoryGroupCreate,
    db: Session = Depends(get_db),
    current_user = Depends(require_admin),
):
    new_group = CategoryGroup(**group.model_dump(), active=True)
    db.add(new_group)
    db.commit()
    db.refresh(new_group)
    return new_group


@router.put("/category-groups/{group_id}", response_model=CategoryGroupOut)
def update_category_group(
    group_id: int,
    group_data: CategoryGroupCreate,
    db: Session = Depends(get_db),
    current_user = Depends(require_admin),
):
    group = db.get(CategoryGroup, group_id)
    if not group:
        raise HTTPException(404, "Grupo no encontrado")

    for field, value in group_data.model_dump().items():
        setattr(group, field, value)

    db.commit()
    db.refresh(group)
    return group


@router.delete("/category-groups/{group_id}")
def delete_category_group(group_id: int, db: Session = Depends(get_db), current_user = Depends(require_admin)):
    group = db.get(CategoryGroup, group_id)
    if not group:
        raise HTTPException(404, "Grupo no encontrado")

    # Las categorías del grupo pasan a no tener grupo
    db.query(Category).filter(Category.group_id == group_id).update({Category.group_id: None})
    db.delete(group)
    db.commit()
    return {"message": "Grupo eliminado"}


# -----------------------
# Categorías
# -----------------------
@router.get("/categories", response_model=list[CategoryOut])
def list_categories(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return store.list_categories(include_inactive=True)


def _check_group(db: Session, group_id):
    if group_id is not None and db.get(CategoryGroup, group_id) is None:
        raise HTTPException(400, "El grupo no existe")


@router.post("/categories", response_model=CategoryOut)
def create_category(category: CategoryCreate, db: Session = Depends(get_db), current_user = Depends(require_admin)):
    _check_group(db, category.group_id)
    new_category = Category(**category.model_dump())
    db.add(new_category)
    db.commit()
    db.refresh(new_category)
    return new_category


@router.put("/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user = Depends(require_admin),
):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(404, "Categoría no encontrada")
    _check_group(db, category_data.group_id)

    for field, value in category_data.model_dump().items():
        setattr(category, field, value)

    db.commit()
    db.refresh(category)
    return category


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    with store.transaction():
        deleted = store.delete_category(category_id)
    if not deleted:
        raise HTTPException(404, "Categoría no encontrada")
    return {"message": "Categoría eliminada"}


# -----------------------
# Votantes
# -----------------------
@router.get("/voters", response_model=list[VoterOut])
def list_voters(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return store.list_voters()


@router.post("/voters", response_model=VoterOut)
def create_voter(voter: VoterCreate, store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return voters_service.create_voter(store, voter)


@router.delete("/voters/{voter_id}")
def delete_voter(voter_id: int, store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    with store.transaction():
        deleted = store.delete_voter(voter_id)
    if not deleted:
        raise HTTPException(404, "Votante no encontrado")
    return {"message": "Votante eliminado"}


@router.post("/voters/generate")
def generate_voter_codes(
    data: GenerateCodesRequest,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    codes = voters_service.generate_codes(store, data.count)
    return {"qr_codes": codes, "count": len(codes)}


# -----------------------
# Ajustes y votación
# -----------------------
@router.get("/settings", response_model=SettingsOut)
def get_settings(store: RecordStore = Depends(get_store), current_user = Depends(require_admin)):
    return SettingsService(store).all_settings()


@router.patch("/settings", response_model=SettingsOut)
def update_settings(
    data: SettingsUpdate,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    return SettingsService(store).update_settings(data)


@router.post("/voting")
def set_voting_status(
    data: VotingControl,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    settings = SettingsService(store)
    if data.open:
        settings.open_voting()
    else:
        settings.close_voting()
    return {"voting_open": settings.is_voting_open()}


@router.post("/voting/timer")
def start_voting_timer(
    data: VotingTimer,
    store: RecordStore = Depends(get_store),
    current_user = Depends(require_admin),
):
    close_time = SettingsService(store).start_voting_timer(data.minutes)
    return {"voting_open": True, "close_time": close_time.isoformat()}
