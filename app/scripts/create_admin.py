import os

from app.db.session import SessionLocal, engine, Base
from app.db.models import _all
from app.db.models.user import User
from app.core.security import hash_password


def create_admin_user():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    username = os.getenv("ADMIN_USERNAME", "admin")
    password = os.getenv("ADMIN_PASSWORD", "admin123")  # 👉 luego la cambias

    try:
        # Comprobar si ya existe
        existing_user = db.query(User).filter(User.username == username).first()

        if existing_user:
            print("⚠️  Ya existe un usuario con ese username")
            print("➡️  Usuario:", existing_user.username)
            print("➡️  Rol:", existing_user.role)
            return

        admin_user = User(
            username=username,
            hashed_password=hash_password(password),
            role="admin"
        )

        db.add(admin_user)
        db.commit()

        print("✅ Usuario administrador creado correctamente")
        print("➡️  Usuario:", username)
        print("⚠️  Cambia la contraseña cuanto antes")

    except Exception as e:
        db.rollback()
        print("❌ Error creando el usuario administrador")
        print(e)
        raise

    finally:
        db.close()


if __name__ == "__main__":
    create_admin_user()
