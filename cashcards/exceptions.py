import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CardError(Exception):
    """Base class for errors raised by the card service."""


class CardNotFound(CardError):
    """
    The card does not exist or belongs to another owner.

    Both cases are reported the same way so callers cannot probe for the
    existence of other owners' cards.
    """


class InvalidCardInput(CardError, ValueError):
    """Malformed or out-of-range amount, identifier or paging parameter."""


def card_exception_handler(exc, context):
    """
    DRF exception handler mapping service errors onto HTTP responses.

    Authentication (401), permission (403) and validation (400) errors are
    left to DRF. Store failures become a 500 without details.
    """
    if isinstance(exc, CardNotFound):
        return Response(status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, InvalidCardInput):
        return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception(
            "Card store failure in %s: %s",
            type(view).__name__ if view is not None else "unknown view",
            exc,
        )
        return Response(
            {"error": "Internal error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return None
