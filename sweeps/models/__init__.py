from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .admin import Admin  # noqa: F401
from .user import User  # noqa: F401
from .draw import Draw, MajorDraw, MiniDraw, WinnerRecord  # noqa: F401
from .entry import DrawEntry  # noqa: F401
from .winner import DrawWinner  # noqa: F401
from .payment import PaymentEvent, PendingEntryAward  # noqa: F401
from .event import DrawEvent  # noqa: F401
from .enums import (  # noqa: F401
    DrawStatus,
    EntrySource,
    RepeatPolicy,
    SelectionMethod,
)

__all__ = [
    "Base",
    "Admin",
    "User",
    "Draw",
    "MajorDraw",
    "MiniDraw",
    "WinnerRecord",
    "DrawEntry",
    "DrawWinner",
    "PaymentEvent",
    "PendingEntryAward",
    "DrawEvent",
    "DrawStatus",
    "EntrySource",
    "RepeatPolicy",
    "SelectionMethod",
]
