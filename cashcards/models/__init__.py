from cashcards.models.base import BaseModel
from cashcards.models.card import CashCard

__all__ = [
    "BaseModel",
    "CashCard",
]
