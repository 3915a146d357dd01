import base64
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.contrib.auth.hashers import identify_hasher, make_password
from django.contrib.auth.models import Group, User
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, transaction
from django.http import QueryDict
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.test import APIClient

from cashcards.authentication import Principal, verify_credentials
from cashcards.directory import (
    DjangoUserDirectory,
    InMemoryUserDirectory,
    get_user_directory,
)
from cashcards.exceptions import CardNotFound, InvalidCardInput
from cashcards.models import CashCard
from cashcards.paging import PageRequest, SortOrder, parse_sort
from cashcards.repository import CashCardRepository
from cashcards.services import CardService, normalize_amount, parse_card_id

FAST_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

SARAH = Principal("sarah1", frozenset({"CARD-OWNER"}))
KUMAR = Principal("kumar2", frozenset({"CARD-OWNER"}))


def basic_auth(username, password):
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


def seed():
    call_command("seed_cards", stdout=StringIO())


# ============================================================
# Model Tests
# ============================================================


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CashCardModelTest(TestCase):
    def test_create_card(self):
        card = CashCard.objects.create(amount=Decimal("12.34"), owner="sarah1")
        card.refresh_from_db()
        self.assertIsNotNone(card.id)
        self.assertEqual(card.amount, Decimal("12.34"))
        self.assertEqual(card.owner, "sarah1")
        self.assertIsNotNone(card.created_at)

    def test_card_str(self):
        card = CashCard.objects.create(amount=Decimal("5.00"), owner="sarah1")
        self.assertIn("sarah1", str(card))
        self.assertIn("5.00", str(card))

    def test_ids_are_unique(self):
        c1 = CashCard.objects.create(amount=Decimal("1.00"), owner="a")
        c2 = CashCard.objects.create(amount=Decimal("1.00"), owner="b")
        self.assertNotEqual(c1.id, c2.id)

    def test_deleted_id_is_not_reused(self):
        c1 = CashCard.objects.create(amount=Decimal("1.00"), owner="a")
        c1_id = c1.id
        c1.delete()
        c2 = CashCard.objects.create(amount=Decimal("1.00"), owner="a")
        self.assertGreater(c2.id, c1_id)

    def test_negative_amount_rejected_by_database(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                CashCard.objects.create(amount=Decimal("-1.00"), owner="a")


# ============================================================
# Directory & Credential Tests
# ============================================================


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class DirectoryTest(TestCase):
    def setUp(self):
        owners = Group.objects.create(name="CARD-OWNER")
        self.user = User.objects.create_user("sarah1", password="abc123")
        self.user.groups.add(owners)

    def test_django_directory_resolves_roles(self):
        entry = DjangoUserDirectory().resolve("sarah1")
        self.assertEqual(entry.username, "sarah1")
        self.assertEqual(entry.roles, frozenset({"CARD-OWNER"}))
        self.assertNotEqual(entry.password_hash, "abc123")

    def test_django_directory_unknown_user(self):
        self.assertIsNone(DjangoUserDirectory().resolve("nobody"))

    def test_django_directory_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        self.assertIsNone(DjangoUserDirectory().resolve("sarah1"))

    def test_in_memory_directory(self):
        directory = InMemoryUserDirectory(
            [{"username": "hank", "password": make_password("qrs456"), "roles": ["NON-OWNER"]}]
        )
        entry = directory.resolve("hank")
        self.assertEqual(entry.roles, frozenset({"NON-OWNER"}))
        self.assertIsNone(directory.resolve("sarah1"))

    def test_directory_is_configurable(self):
        self.assertIsInstance(get_user_directory(), DjangoUserDirectory)
        with self.settings(
            CASHCARDS_USER_DIRECTORY="cashcards.directory.InMemoryUserDirectory"
        ):
            self.assertIsInstance(get_user_directory(), InMemoryUserDirectory)

    def test_verify_credentials_success(self):
        principal = verify_credentials(DjangoUserDirectory(), "sarah1", "abc123")
        self.assertEqual(principal, SARAH)
        self.assertTrue(principal.is_authenticated)
        self.assertTrue(principal.has_role("CARD-OWNER"))

    def test_verify_credentials_wrong_password(self):
        self.assertIsNone(verify_credentials(DjangoUserDirectory(), "sarah1", "nope"))

    @patch("cashcards.authentication.make_password")
    def test_verify_credentials_unknown_user_still_hashes(self, mock_make_password):
        result = verify_credentials(DjangoUserDirectory(), "BAD-USER", "abc123")
        self.assertIsNone(result)
        mock_make_password.assert_called_once_with("abc123")

    @patch("cashcards.authentication.make_password")
    def test_verify_credentials_unusable_password(self, mock_make_password):
        self.user.set_unusable_password()
        self.user.save()
        self.assertIsNone(verify_credentials(DjangoUserDirectory(), "sarah1", "abc123"))
        mock_make_password.assert_called_once()


class PasswordHasherTest(SimpleTestCase):
    def test_default_hasher_is_bcrypt(self):
        encoded = make_password("abc123")
        self.assertEqual(identify_hasher(encoded).algorithm, "bcrypt_sha256")
        self.assertNotIn("abc123", encoded)


# ============================================================
# Paging Tests
# ============================================================


class PageRequestTest(SimpleTestCase):
    def parse(self, query):
        return PageRequest.from_query_params(QueryDict(query))

    def test_defaults(self):
        request = self.parse("")
        self.assertEqual(request.page, 0)
        self.assertEqual(request.size, 20)
        self.assertEqual(request.sort, (SortOrder("amount"),))
        self.assertEqual(request.ordering(), ("amount", "id"))

    def test_page_and_size(self):
        request = self.parse("page=2&size=5")
        self.assertEqual(request.offset, 10)
        self.assertEqual(request.limit, 5)

    def test_sort_with_direction(self):
        request = self.parse("sort=amount,desc")
        self.assertEqual(request.ordering(), ("-amount", "id"))

    def test_direction_applies_to_every_field_in_value(self):
        self.assertEqual(
            parse_sort("owner,amount,DESC"),
            (SortOrder("owner", True), SortOrder("amount", True)),
        )

    def test_repeated_sort_params(self):
        request = self.parse("sort=owner&sort=amount,desc")
        self.assertEqual(request.ordering(), ("owner", "-amount", "id"))

    def test_sort_by_id_has_no_extra_tie_break(self):
        self.assertEqual(self.parse("sort=id,desc").ordering(), ("-id",))

    @override_settings(CASHCARDS_MAX_PAGE_SIZE=50, CASHCARDS_DEFAULT_PAGE_SIZE=10)
    def test_size_settings(self):
        self.assertEqual(self.parse("").size, 10)
        self.assertEqual(self.parse("size=500").size, 50)

    def test_invalid_params(self):
        for query in (
            "page=-1",
            "page=abc",
            "size=0",
            "size=x",
            "sort=balance",
            "sort=desc",
            "sort=amount,sideways",
        ):
            with self.subTest(query=query):
                with self.assertRaises(InvalidCardInput):
                    self.parse(query)


# ============================================================
# Service Tests
# ============================================================


class AmountParsingTest(SimpleTestCase):
    def test_normalize_amount(self):
        self.assertEqual(normalize_amount(19.99), Decimal("19.99"))
        self.assertEqual(normalize_amount("250"), Decimal("250.00"))
        self.assertEqual(normalize_amount(Decimal("1.500")), Decimal("1.50"))
        self.assertEqual(normalize_amount(0), Decimal("0.00"))

    def test_normalize_amount_rejects(self):
        for value in (None, True, "abc", "-0.01", -5, "NaN", "Infinity", "1.234", "1e12", [1]):
            with self.subTest(value=value):
                with self.assertRaises(InvalidCardInput):
                    normalize_amount(value)

    def test_parse_card_id(self):
        self.assertEqual(parse_card_id("99"), 99)
        for raw in ("abc", "-1", "1.5", "", "99999999999999999999"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidCardInput):
                    parse_card_id(raw)


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CardServiceTest(TestCase):
    @classmethod
    def setUpTestData(cls):
        seed()

    def test_get_own_card(self):
        card = CardService.get(99, SARAH)
        self.assertEqual(card.amount, Decimal("123.45"))
        self.assertEqual(card.owner, "sarah1")

    def test_get_other_owners_card_is_not_found(self):
        with self.assertRaises(CardNotFound):
            CardService.get(102, SARAH)

    def test_get_missing_card_is_not_found(self):
        with self.assertRaises(CardNotFound):
            CardService.get(1000, SARAH)

    def test_create_sets_owner_and_amount(self):
        card = CardService.create(Decimal("250.00"), SARAH)
        fetched = CardService.get(card.id, SARAH)
        self.assertEqual(fetched.amount, Decimal("250.00"))
        self.assertEqual(fetched.owner, "sarah1")
        self.assertNotIn(card.id, (99, 100, 101, 102))

    def test_create_negative_amount_persists_nothing(self):
        before = CashCard.objects.count()
        with self.assertRaises(InvalidCardInput):
            CardService.create("-1.00", SARAH)
        self.assertEqual(CashCard.objects.count(), before)

    def test_update_replaces_amount_only(self):
        CardService.update(99, Decimal("19.99"), SARAH)
        card = CardService.get(99, SARAH)
        self.assertEqual(card.id, 99)
        self.assertEqual(card.amount, Decimal("19.99"))
        self.assertEqual(card.owner, "sarah1")

    def test_update_other_owners_card_is_not_found(self):
        with self.assertRaises(CardNotFound):
            CardService.update(102, Decimal("333.33"), SARAH)
        self.assertEqual(CashCard.objects.get(pk=102).amount, Decimal("200.00"))

    def test_update_missing_card_is_not_found(self):
        with self.assertRaises(CardNotFound):
            CardService.update(99999, Decimal("1.00"), SARAH)

    def test_delete_then_get_is_not_found(self):
        CardService.delete(99, SARAH)
        with self.assertRaises(CardNotFound):
            CardService.get(99, SARAH)

    def test_repeated_delete_is_not_found(self):
        CardService.delete(100, SARAH)
        with self.assertRaises(CardNotFound):
            CardService.delete(100, SARAH)

    def test_delete_other_owners_card_is_not_found(self):
        with self.assertRaises(CardNotFound):
            CardService.delete(102, SARAH)
        self.assertTrue(CashCard.objects.filter(pk=102).exists())

    def test_repository_delete_is_scoped_to_owner(self):
        self.assertEqual(CashCardRepository.delete_by_id_and_owner(102, "sarah1"), 0)
        self.assertTrue(CashCard.objects.filter(pk=102).exists())
        self.assertEqual(CashCardRepository.delete_by_id_and_owner(102, "kumar2"), 1)
        self.assertFalse(CashCard.objects.filter(pk=102).exists())

    def test_list_defaults(self):
        cards = CardService.list(SARAH)
        self.assertEqual(
            [c.amount for c in cards],
            [Decimal("1.00"), Decimal("123.45"), Decimal("150.00")],
        )

    def test_list_sorted_page(self):
        request = PageRequest(page=0, size=1, sort=(SortOrder("amount", True),))
        cards = CardService.list(SARAH, request)
        self.assertEqual(len(cards), 1)
        self.assertEqual(cards[0].amount, Decimal("150.00"))

    def test_list_ties_broken_by_id(self):
        first = CardService.create("5.00", KUMAR)
        second = CardService.create("5.00", KUMAR)
        cards = CardService.list(KUMAR)
        self.assertEqual([c.id for c in cards][:2], [first.id, second.id])

        page_one = CardService.list(KUMAR, PageRequest(page=0, size=1))
        page_two = CardService.list(KUMAR, PageRequest(page=1, size=1))
        self.assertEqual(page_one[0].id, first.id)
        self.assertEqual(page_two[0].id, second.id)

    def test_list_empty_for_owner_without_cards(self):
        nobody = Principal("hank-owns-no-cards", frozenset({"CARD-OWNER"}))
        self.assertEqual(CardService.list(nobody), [])

    def test_list_page_past_end_is_empty(self):
        self.assertEqual(CardService.list(SARAH, PageRequest(page=5, size=10)), [])

    def test_list_huge_page_is_empty(self):
        request = PageRequest(page=2**62, size=20)
        self.assertEqual(CardService.list(SARAH, request), [])


# ============================================================
# API Tests
# ============================================================


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class CardAPITest(TestCase):
    @classmethod
    def setUpTestData(cls):
        seed()

    def setUp(self):
        self.client = APIClient()

    def as_user(self, username, password):
        self.client.credentials(HTTP_AUTHORIZATION=basic_auth(username, password))
        return self.client

    def as_sarah(self):
        return self.as_user("sarah1", "abc123")

    def test_get_card(self):
        response = self.as_sarah().get("/cards/99")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], 99)
        self.assertEqual(response.data["amount"], Decimal("123.45"))
        self.assertEqual(response.data["owner"], "sarah1")
        self.assertEqual(response.json()["amount"], 123.45)

    def test_get_unknown_card(self):
        response = self.as_sarah().get("/cards/1000")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.content, b"")

    def test_get_other_owners_card_looks_like_unknown(self):
        other = self.as_sarah().get("/cards/102")
        unknown = self.as_sarah().get("/cards/1000")
        self.assertEqual(other.status_code, 404)
        self.assertEqual(other.content, unknown.content)

    def test_get_malformed_id(self):
        response = self.as_sarah().get("/cards/abc")
        self.assertEqual(response.status_code, 400)

    def test_create_card(self):
        response = self.as_sarah().post(
            "/cards", {"amount": 250.00, "id": 99, "owner": "kumar2"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.content, b"")

        location = response["Location"]
        self.assertTrue(location.startswith("http://testserver/cards/"))

        fetched = self.client.get(location)
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.data["amount"], Decimal("250.00"))
        self.assertEqual(fetched.data["owner"], "sarah1")
        self.assertNotEqual(fetched.data["id"], 99)

    def test_create_negative_amount(self):
        before = CashCard.objects.count()
        response = self.as_sarah().post("/cards", {"amount": -1000}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {"error": "Amount must not be negative."})
        self.assertEqual(CashCard.objects.count(), before)

    def test_create_malformed_amount(self):
        for body in ({}, {"amount": "abc"}, {"amount": 1.234}, {"amount": None}):
            with self.subTest(body=body):
                response = self.as_sarah().post("/cards", body, format="json")
                self.assertEqual(response.status_code, 400)

    def test_update_card(self):
        response = self.as_sarah().put("/cards/99", {"amount": 19.99}, format="json")
        self.assertEqual(response.status_code, 204)

        fetched = self.client.get("/cards/99")
        self.assertEqual(fetched.data["id"], 99)
        self.assertEqual(fetched.data["amount"], Decimal("19.99"))

    def test_update_unknown_card(self):
        response = self.as_sarah().put("/cards/99999", {"amount": 19.99}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_update_other_owners_card(self):
        response = self.as_sarah().put("/cards/102", {"amount": 333.33}, format="json")
        self.assertEqual(response.status_code, 404)

        kumar = self.as_user("kumar2", "xyz789").get("/cards/102")
        self.assertEqual(kumar.data["amount"], Decimal("200.00"))

    def test_update_negative_amount(self):
        response = self.as_sarah().put("/cards/99", {"amount": -5}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(CashCard.objects.get(pk=99).amount, Decimal("123.45"))

    def test_delete_card(self):
        response = self.as_sarah().delete("/cards/99")
        self.assertEqual(response.status_code, 204)

        self.assertEqual(self.client.get("/cards/99").status_code, 404)
        self.assertEqual(self.client.delete("/cards/99").status_code, 404)

    def test_delete_unknown_card(self):
        response = self.as_sarah().delete("/cards/99999")
        self.assertEqual(response.status_code, 404)

    def test_delete_other_owners_card(self):
        response = self.as_sarah().delete("/cards/102")
        self.assertEqual(response.status_code, 404)

        kumar = self.as_user("kumar2", "xyz789").get("/cards/102")
        self.assertEqual(kumar.status_code, 200)

    def test_list_cards(self):
        response = self.as_sarah().get("/cards")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 3)
        self.assertEqual({c["id"] for c in response.data}, {99, 100, 101})
        self.assertEqual(
            [c["amount"] for c in response.json()], [1.00, 123.45, 150.00]
        )

    def test_list_page(self):
        response = self.as_sarah().get("/cards?page=0&size=1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["amount"], Decimal("1.00"))

    def test_list_sorted_page(self):
        response = self.as_sarah().get("/cards?page=0&size=1&sort=amount,desc")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["amount"], Decimal("150.00"))

    def test_list_page_past_end(self):
        response = self.as_sarah().get("/cards?page=3&size=5")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])

    def test_list_page_beyond_offset_range(self):
        response = self.as_sarah().get("/cards?page=100000000000000000000&size=20")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])

    def test_list_invalid_sort(self):
        response = self.as_sarah().get("/cards?sort=password")
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.data)

    def test_bad_credentials(self):
        for username, password in (("BAD-USER", "abc123"), ("sarah1", "BAD-PASSWORD")):
            with self.subTest(username=username):
                response = self.as_user(username, password).get("/cards/99")
                self.assertEqual(response.status_code, 401)
                self.assertIn("Basic", response["WWW-Authenticate"])

    def test_unknown_user_and_wrong_password_look_the_same(self):
        unknown = self.as_user("BAD-USER", "abc123").get("/cards/99")
        wrong = self.as_user("sarah1", "BAD-PASSWORD").get("/cards/99")
        self.assertEqual(unknown.status_code, wrong.status_code)
        self.assertEqual(unknown.content, wrong.content)

    def test_missing_credentials(self):
        for method in ("get", "post"):
            with self.subTest(method=method):
                response = getattr(APIClient(), method)("/cards")
                self.assertEqual(response.status_code, 401)

    def test_malformed_authorization_header(self):
        self.client.credentials(HTTP_AUTHORIZATION="Basic not-base64!")
        self.assertEqual(self.client.get("/cards").status_code, 401)

    def test_reject_users_who_are_not_card_owners(self):
        self.as_user("hank-owns-no-cards", "qrs456")
        calls = (
            ("get", "/cards", None),
            ("get", "/cards/99", None),
            ("post", "/cards", {"amount": 1}),
            ("put", "/cards/99", {"amount": 1}),
            ("delete", "/cards/99", None),
        )
        for method, url, body in calls:
            with self.subTest(method=method, url=url):
                response = getattr(self.client, method)(url, body, format="json")
                self.assertEqual(response.status_code, 403)
        self.assertTrue(CashCard.objects.filter(pk=99).exists())

    @override_settings(CASHCARDS_REQUIRED_ROLE="NON-OWNER")
    def test_required_role_is_configurable(self):
        self.assertEqual(self.as_sarah().get("/cards").status_code, 403)
        self.assertEqual(
            self.as_user("hank-owns-no-cards", "qrs456").get("/cards").status_code, 200
        )

    def test_in_memory_directory(self):
        users = [
            {
                "username": "sarah1",
                "password": make_password("memory-pw"),
                "roles": ["CARD-OWNER"],
            }
        ]
        with self.settings(
            CASHCARDS_USER_DIRECTORY="cashcards.directory.InMemoryUserDirectory",
            CASHCARDS_IN_MEMORY_USERS=users,
        ):
            self.assertEqual(self.as_user("sarah1", "memory-pw").get("/cards/99").status_code, 200)
            self.assertEqual(self.as_user("sarah1", "abc123").get("/cards/99").status_code, 401)

    @patch(
        "cashcards.services.card.CashCardRepository.create",
        side_effect=DatabaseError("disk I/O error"),
    )
    def test_store_failure_on_create(self, mock_create):
        before = CashCard.objects.count()
        with self.assertLogs("cashcards.exceptions", "ERROR"):
            response = self.as_sarah().post("/cards", {"amount": 5}, format="json")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "Internal error."})
        self.assertEqual(CashCard.objects.count(), before)

    @patch(
        "cashcards.services.card.CashCardRepository.update_amount",
        side_effect=DatabaseError("disk I/O error"),
    )
    def test_store_failure_on_update(self, mock_update):
        with self.assertLogs("cashcards.exceptions", "ERROR"):
            response = self.as_sarah().put("/cards/99", {"amount": 7}, format="json")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(CashCard.objects.get(pk=99).amount, Decimal("123.45"))

    def test_request_logging_hides_credentials(self):
        with self.assertLogs("cashcards.middleware", "INFO") as logs:
            self.as_sarah().put("/cards/100", {"amount": 2.5}, format="json")
        output = "\n".join(logs.output)
        self.assertIn("PUT /cards/100", output)
        self.assertIn("User: sarah1", output)
        self.assertIn("Status: 204", output)
        self.assertNotIn("abc123", output)
        self.assertNotIn(basic_auth("sarah1", "abc123"), output)


# ============================================================
# Management Command Tests
# ============================================================


@override_settings(PASSWORD_HASHERS=FAST_HASHERS)
class SeedCardsCommandTest(TestCase):
    def test_seed_creates_users_and_cards(self):
        out = StringIO()
        call_command("seed_cards", stdout=out)

        self.assertEqual(
            sorted(CashCard.objects.values_list("id", flat=True)), [99, 100, 101, 102]
        )
        sarah = User.objects.get(username="sarah1")
        self.assertTrue(sarah.check_password("abc123"))
        self.assertTrue(sarah.groups.filter(name="CARD-OWNER").exists())
        hank = User.objects.get(username="hank-owns-no-cards")
        self.assertTrue(hank.groups.filter(name="NON-OWNER").exists())
        self.assertIn("Seeded 4 card(s)", out.getvalue())

    def test_seed_is_idempotent(self):
        seed()
        seed()
        self.assertEqual(CashCard.objects.count(), 4)
        self.assertEqual(User.objects.count(), 3)

    def test_new_cards_do_not_collide_with_seeded_ids(self):
        seed()
        card = CashCard.objects.create(amount=Decimal("1.00"), owner="sarah1")
        self.assertGreater(card.id, 102)

    def test_flush_removes_other_cards(self):
        CashCard.objects.create(amount=Decimal("9.00"), owner="someone")
        call_command("seed_cards", "--flush", stdout=StringIO())
        self.assertFalse(CashCard.objects.filter(owner="someone").exists())
        self.assertEqual(CashCard.objects.count(), 4)
