import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.db import transaction

from cashcards.authentication import Principal
from cashcards.exceptions import CardNotFound, InvalidCardInput
from cashcards.models import CashCard
from cashcards.paging import PageRequest
from cashcards.repository import CashCardRepository

logger = logging.getLogger(__name__)

AMOUNT_PLACES = 2
AMOUNT_MAX_DIGITS = 12
AMOUNT_QUANTUM = Decimal("0.01")
MAX_CARD_ID = 2**63 - 1


def normalize_amount(value) -> Decimal:
    """
    Convert a client amount into a two-place Decimal.

    Floats go through ``str`` so 19.99 stays 19.99 rather than its binary
    approximation.

    Raises:
        InvalidCardInput: If the value is missing, not a finite number,
            negative, has more than two decimal places or too many digits.
    """
    if value is None or isinstance(value, bool):
        raise InvalidCardInput("Amount is required and must be a number.")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidCardInput("Amount must be a number.")

    if not amount.is_finite():
        raise InvalidCardInput("Amount must be a finite number.")
    if amount < 0:
        raise InvalidCardInput("Amount must not be negative.")
    if amount.adjusted() >= AMOUNT_MAX_DIGITS - AMOUNT_PLACES:
        raise InvalidCardInput("Amount is too large.")
    if amount != amount.quantize(AMOUNT_QUANTUM):
        raise InvalidCardInput("Amount must have at most two decimal places.")
    return amount.quantize(AMOUNT_QUANTUM)


def parse_card_id(raw) -> int:
    """
    Parse a card identifier taken from a URL.

    Raises:
        InvalidCardInput: If it is not a non-negative integer.
    """
    text = str(raw).strip()
    if not (text.isascii() and text.isdigit()) or int(text) > MAX_CARD_ID:
        raise InvalidCardInput(f"Card id '{raw}' is not a valid identifier.")
    return int(text)


class CardService:
    """
    Card operations scoped to the calling principal.

    Ownership is part of every lookup and delete, so a mutation never
    reaches another owner's card. A card that does not exist and a
    card owned by someone else both raise CardNotFound, so callers cannot
    tell them apart.
    """

    @staticmethod
    def get(card_id: int, principal: Principal) -> CashCard:
        """
        Return the caller's card with the given id.

        Raises:
            CardNotFound: If the card is absent or owned by another principal.
        """
        card = CashCardRepository.find_by_id_and_owner(card_id, principal.username)
        if card is None:
            logger.info("Card lookup miss: card=%s user=%s", card_id, principal)
            raise CardNotFound(card_id)
        return card

    @staticmethod
    @transaction.atomic
    def create(amount, principal: Principal) -> CashCard:
        """
        Create a card owned by the caller.

        Args:
            amount: Non-negative amount with at most two decimal places.
            principal: The authenticated caller; becomes the owner.

        Returns:
            The created CashCard with its store-assigned id.

        Raises:
            InvalidCardInput: If the amount is malformed or negative. Nothing
                is persisted in that case.
        """
        amount = normalize_amount(amount)
        card = CashCardRepository.create(amount=amount, owner=principal.username)

        logger.info(
            "Card created: card=%d user=%s amount=%s", card.id, principal, amount
        )
        return card

    @staticmethod
    @transaction.atomic
    def update(card_id: int, amount, principal: Principal) -> CashCard:
        """
        Replace the amount of one of the caller's cards. Id and owner never change.

        Raises:
            InvalidCardInput: If the amount is malformed or negative.
            CardNotFound: If the card is absent or owned by another principal.
        """
        amount = normalize_amount(amount)
        card = CashCardRepository.find_by_id_and_owner(card_id, principal.username)
        if card is None:
            logger.info("Card update miss: card=%s user=%s", card_id, principal)
            raise CardNotFound(card_id)

        previous = card.amount
        CashCardRepository.update_amount(card, amount)

        logger.info(
            "Card updated: card=%d user=%s amount=%s->%s",
            card.id,
            principal,
            previous,
            amount,
        )
        return card

    @staticmethod
    @transaction.atomic
    def delete(card_id: int, principal: Principal) -> None:
        """
        Delete one of the caller's cards.

        Raises:
            CardNotFound: If the card is absent, already deleted, or owned by
                another principal.
        """
        deleted = CashCardRepository.delete_by_id_and_owner(
            card_id, principal.username
        )
        if not deleted:
            logger.info("Card delete miss: card=%s user=%s", card_id, principal)
            raise CardNotFound(card_id)

        logger.info("Card deleted: card=%d user=%s", card_id, principal)

    @staticmethod
    def list(
        principal: Principal, page_request: Optional[PageRequest] = None
    ) -> List[CashCard]:
        """
        Return one page of the caller's cards.

        Defaults to the first page, the configured page size and amount
        ascending. A page past the end is an empty list.
        """
        if page_request is None:
            page_request = PageRequest.default()
        return CashCardRepository.find_by_owner(principal.username, page_request)
