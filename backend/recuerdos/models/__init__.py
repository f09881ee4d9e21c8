from recuerdos.models.memory import Memory
from recuerdos.models.user import User

__all__ = [
    "User",
    "Memory",
]
