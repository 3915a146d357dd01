from cashcards.serializers.card import CardAmountSerializer, CashCardSerializer

__all__ = [
    "CardAmountSerializer",
    "CashCardSerializer",
]
