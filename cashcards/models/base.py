from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with created_at / updated_at bookkeeping.

    Timestamps are stored for auditing only; they are not part of the
    public card representation.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
