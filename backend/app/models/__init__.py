# Transaction Tracker Models
from app.models.base import BaseModel
from app.models.token_record import TokenRecord
from app.models.user import User

__all__ = [
    "BaseModel",
    "TokenRecord",
    "User",
]
