from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from cashcards.models.base import BaseModel

SORTABLE_FIELDS = ("id", "amount", "owner")


class CashCard(BaseModel):
    """
    A monetary amount owned by exactly one principal.

    `owner` is the username of the principal that created the card. It is set
    once at creation and never changes; every read or write goes through a
    query scoped to the caller's username. Amounts are exact decimals with two
    places and can never be negative (enforced by a check constraint as well
    as at the service layer).
    """

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    owner = models.CharField(max_length=150, db_index=True, editable=False)

    class Meta(BaseModel.Meta):
        ordering = ["amount", "id"]
        indexes = [
            models.Index(fields=["owner", "amount"], name="idx_owner_amount"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="cashcard_amount_non_negative",
            ),
        ]

    def __str__(self):
        return f"CashCard {self.id} | {self.owner} | {self.amount}"
