from cashcards.services.card import CardService, normalize_amount, parse_card_id

__all__ = [
    "CardService",
    "normalize_amount",
    "parse_card_id",
]
