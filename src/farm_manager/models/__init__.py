"""ORM model registry; importing it registers every model with Alembic autogenerate."""

from farm_manager.models.cattle import Cattle, CattleStatus, Gender
from farm_manager.models.production import MilkingSession, Production, ProductionStatus
from farm_manager.models.user import User, UserRole

__all__ = [
    "Cattle",
    "CattleStatus",
    "Gender",
    "MilkingSession",
    "Production",
    "ProductionStatus",
    "User",
    "UserRole",
]
