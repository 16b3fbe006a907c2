from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .user import User  # noqa: F401
from .points import PointTransaction, TransactionKind, UserPointAccount  # noqa: F401
from .draw import DrawResult  # noqa: F401

__all__ = [
    "Base",
    "User",
    "UserPointAccount",
    "PointTransaction",
    "TransactionKind",
    "DrawResult",
]
