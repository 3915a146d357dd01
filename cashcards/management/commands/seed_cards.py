from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand
from django.core.management.color import no_style
from django.db import connection, transaction

from cashcards.models import CashCard

DEMO_USERS = (
    ("sarah1", "abc123", "CARD-OWNER"),
    ("hank-owns-no-cards", "qrs456", "NON-OWNER"),
    ("kumar2", "xyz789", "CARD-OWNER"),
)

DEMO_CARDS = (
    (99, Decimal("123.45"), "sarah1"),
    (100, Decimal("1.00"), "sarah1"),
    (101, Decimal("150.00"), "sarah1"),
    (102, Decimal("200.00"), "kumar2"),
)


class Command(BaseCommand):
    help = "Creates the demo roles, users and cash cards"

    def add_arguments(self, parser):
        parser.add_argument(
            "--flush",
            action="store_true",
            help="Delete every existing card before seeding.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options["flush"]:
            deleted, _ = CashCard.objects.all().delete()
            self.stdout.write(self.style.WARNING(f"Deleted {deleted} card(s)."))

        user_model = get_user_model()
        for username, password, role in DEMO_USERS:
            group, _ = Group.objects.get_or_create(name=role)
            user, created = user_model.objects.get_or_create(username=username)
            if created:
                user.set_password(password)
                user.save()
            user.groups.add(group)
            self.stdout.write(f"User {username} ({role}){' created' if created else ''}")

        for card_id, amount, owner in DEMO_CARDS:
            CashCard.objects.update_or_create(
                id=card_id, defaults={"amount": amount, "owner": owner}
            )

        # Explicit ids do not advance sequences on every backend.
        for sql in connection.ops.sequence_reset_sql(no_style(), [CashCard]):
            with connection.cursor() as cursor:
                cursor.execute(sql)

        self.stdout.write(
            self.style.SUCCESS(f"Seeded {len(DEMO_CARDS)} card(s) for {len(DEMO_USERS)} user(s).")
        )
