from rest_framework import serializers

from cashcards.models import CashCard


class CashCardSerializer(serializers.ModelSerializer):
    """Read-only serializer for card responses."""

    class Meta:
        model = CashCard
        fields = ("id", "amount", "owner")
        read_only_fields = fields


class CardAmountSerializer(serializers.Serializer):
    """
    Validates create and update request bodies.

    Only `amount` is read; any `id` or `owner` the client sends is ignored.
    Range checks (negative amounts) are left to CardService.
    """

    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
