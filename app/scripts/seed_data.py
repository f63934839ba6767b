"""
Datos de prueba: coches, grupos y categorías de un "car show" típico.

Uso: python -m app.scripts.seed_data [--reset]
"""
import sys

from app.db.session import SessionLocal, engine, Base
from app.db.models import _all
from app.db.models.car import Car
from app.db.models.category import Category
from app.db.models.category_group import CategoryGroup
from app.db.record_store import RecordStore
from app.services.voters import generate_codes

MOCK_CARS = [
    ("101", "Alex Johnson", "Lightning Bolt", "3b82f6"),
    ("102", "Sarah Williams", "Red Rocket", "ef4444"),
    ("103", "Mike Chen", "Blue Thunder", "3b82f6"),
    ("104", "Emma Davis", "Pink Panther", "ec4899"),
    ("105", "James Brown", "Green Machine", "22c55e"),
    ("106", "Olivia Martinez", "Purple Haze", "a855f7"),
    ("107", "Noah Wilson", "Golden Arrow", "eab308"),
    ("108", "Sophia Garcia", "Silver Bullet", "94a3b8"),
    ("109", "Liam Anderson", "Black Hawk", "1f2937"),
    ("110", "Ava Taylor", "White Lightning", "6366f1"),
    ("111", "Ethan Thomas", "Orange Crush", "f97316"),
    ("112", "Isabella Moore", "Teal Dream", "14b8a6"),
]

RANKS = ["Lion", "Tiger", "Wolf", "Bear", "Webelos", "AOL"]

# (nombre del grupo, pool de exclusividad, máximo de premios, categorías)
GROUPS = [
    ("Design Awards", 1, 1, ["Best Design", "Most Creative", "Best Paint"]),
    ("Speed Looks", 2, None, ["Fastest Looking", "Most Aerodynamic"]),
    ("Fun Awards", None, None, ["Funniest Car", "Most Colorful"]),
]

NUM_VOTER_CODES = 30


def reset_db():
    print("🗑️ Borrando base de datos antigua...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("✅ Tablas creadas.")


def create_cars(db):
    print("🏁 Creando coches...")
    for i, (number, racer, name, color) in enumerate(MOCK_CARS):
        db.add(Car(
            car_number=number,
            racer_name=racer,
            car_name=name,
            photo_url=f"https://placehold.co/300x300/{color}/ffffff?text={number}",
            rank=RANKS[i % len(RANKS)],
        ))
    db.commit()


def create_categories(db):
    print("🏆 Creando grupos y categorías...")
    order = 1
    for group_order, (group_name, pool_id, max_wins, categories) in enumerate(GROUPS, start=1):
        group = CategoryGroup(
            name=group_name,
            exclusivity_pool_id=pool_id,
            max_wins_per_car=max_wins,
            display_order=group_order,
        )
        db.add(group)
        db.flush()
        for name in categories:
            db.add(Category(name=name, display_order=order, group_id=group.id))
            order += 1

    # Sólo para el comité de carrera
    db.add(Category(
        name="Best in Show (Committee)",
        display_order=order,
        allowed_voter_types=["Race Committee"],
    ))
    db.commit()


def run(reset: bool = False):
    if reset:
        reset_db()
    else:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(Car).count() > 0:
            print("⚠️  Ya hay coches en la base de datos, usa --reset para empezar de cero")
            return
        create_cars(db)
        create_categories(db)

        codes = generate_codes(RecordStore(db), NUM_VOTER_CODES)
        print(f"🎟️ {len(codes)} códigos de votante: {', '.join(codes[:5])}...")
        print("✅ Datos de prueba listos")
    finally:
        db.close()


if __name__ == "__main__":
    run(reset="--reset" in sys.argv)
