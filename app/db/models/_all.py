# Importa todos los modelos para que Base.metadata los conozca
from app.db.models.car import Car
from app.db.models.category_group import CategoryGroup
from app.db.models.category import Category
from app.db.models.voter import Voter
from app.db.models.vote import Vote
from app.db.models.setting import Setting
from app.db.models.user import User

__all__ = ["Car", "CategoryGroup", "Category", "Voter", "Vote", "Setting", "User"]
