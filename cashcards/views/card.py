import logging

from django.urls import reverse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from cashcards.paging import PageRequest
from cashcards.serializers import CardAmountSerializer, CashCardSerializer
from cashcards.services import CardService, parse_card_id

logger = logging.getLogger(__name__)


class CardListCreateView(APIView):
    """
    GET  /cards — List the caller's cards.
    POST /cards — Create a card owned by the caller.

    Query params (GET):
        - page: Zero-based page index (default 0)
        - size: Page size (default 20)
        - sort: field[,field...][,asc|desc], repeatable (default amount,asc)

    Request body (POST): {"amount": <non-negative number, two decimals>}
    """

    def get(self, request, *args, **kwargs):
        page_request = PageRequest.from_query_params(request.query_params)
        cards = CardService.list(request.user, page_request)
        return Response(CashCardSerializer(cards, many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = CardAmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        card = CardService.create(serializer.validated_data["amount"], request.user)

        location = request.build_absolute_uri(
            reverse("card-detail", kwargs={"card_id": card.id})
        )
        return Response(status=status.HTTP_201_CREATED, headers={"Location": location})


class CardDetailView(APIView):
    """
    GET    /cards/<id> — Retrieve one of the caller's cards.
    PUT    /cards/<id> — Replace its amount. Body: {"amount": <number>}
    DELETE /cards/<id> — Delete it.

    A card that does not exist and a card owned by someone else both answer 404.
    """

    def get(self, request, card_id, *args, **kwargs):
        card = CardService.get(parse_card_id(card_id), request.user)
        return Response(CashCardSerializer(card).data)

    def put(self, request, card_id, *args, **kwargs):
        card_id = parse_card_id(card_id)
        serializer = CardAmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        CardService.update(card_id, serializer.validated_data["amount"], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    def delete(self, request, card_id, *args, **kwargs):
        CardService.delete(parse_card_id(card_id), request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
