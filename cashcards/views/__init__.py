from cashcards.views.card import CardDetailView, CardListCreateView

__all__ = [
    "CardListCreateView",
    "CardDetailView",
]
