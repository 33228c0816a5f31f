# Fleet API Models
from fleet_api.models.base import BaseModel
from fleet_api.models.user import USER_ROLES, Role, User

__all__ = [
    "BaseModel",
    "Role",
    "USER_ROLES",
    "User",
]
