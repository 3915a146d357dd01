from django.urls import path

from cashcards.views import CardDetailView, CardListCreateView

urlpatterns = [
    path("cards", CardListCreateView.as_view(), name="card-list"),
    path("cards/<str:card_id>", CardDetailView.as_view(), name="card-detail"),
]
