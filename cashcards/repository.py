from decimal import Decimal
from typing import List, Optional

from cashcards.models import CashCard
from cashcards.paging import PageRequest

# Largest OFFSET the database accepts (signed 64-bit).
MAX_ROW_OFFSET = 2**63 - 1


class CashCardRepository:
    """
    Record store for cash cards.

    Every lookup and delete is scoped to an owner. `update_amount` only
    receives a card that an owner-scoped lookup returned.
    """

    @staticmethod
    def find_by_id_and_owner(card_id: int, owner: str) -> Optional[CashCard]:
        return CashCard.objects.filter(pk=card_id, owner=owner).first()

    @staticmethod
    def find_by_owner(owner: str, page_request: PageRequest) -> List[CashCard]:
        queryset = CashCard.objects.filter(owner=owner).order_by(
            *page_request.ordering()
        )
        start = page_request.offset
        if start > MAX_ROW_OFFSET - page_request.limit:
            return []
        return list(queryset[start : start + page_request.limit])

    @staticmethod
    def create(amount: Decimal, owner: str) -> CashCard:
        return CashCard.objects.create(amount=amount, owner=owner)

    @staticmethod
    def update_amount(card: CashCard, amount: Decimal) -> CashCard:
        card.amount = amount
        card.save(update_fields=["amount", "updated_at"])
        return card

    @staticmethod
    def delete_by_id_and_owner(card_id: int, owner: str) -> int:
        deleted, _ = CashCard.objects.filter(pk=card_id, owner=owner).delete()
        return deleted
