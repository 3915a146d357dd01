from dataclasses import dataclass
from typing import Tuple

from django.conf import settings

from cashcards.exceptions import InvalidCardInput
from cashcards.models.card import SORTABLE_FIELDS

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 2000
DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class SortOrder:
    field: str
    descending: bool = False

    def as_ordering(self) -> str:
        return f"-{self.field}" if self.descending else self.field


DEFAULT_SORT = (SortOrder("amount"),)


@dataclass(frozen=True)
class PageRequest:
    """
    Explicit paging parameters for an owner-scoped card query.

    `page` is zero-based. `sort` is applied before slicing, and an ascending
    `id` tie-break is always appended so equal amounts keep the same order
    from one request to the next.
    """

    page: int = 0
    size: int = DEFAULT_PAGE_SIZE
    sort: Tuple[SortOrder, ...] = DEFAULT_SORT

    @property
    def offset(self) -> int:
        return self.page * self.size

    @property
    def limit(self) -> int:
        return self.size

    def ordering(self) -> Tuple[str, ...]:
        keys = [order.as_ordering() for order in self.sort]
        if not any(order.field == "id" for order in self.sort):
            keys.append("id")
        return tuple(keys)

    @classmethod
    def default(cls) -> "PageRequest":
        return cls(size=default_page_size())

    @classmethod
    def from_query_params(cls, params) -> "PageRequest":
        """
        Build a PageRequest from ``page``, ``size`` and ``sort`` query params.

        ``sort`` may be repeated and each value has the form
        ``field[,field...][,asc|desc]``; the direction applies to every field
        in that value. Missing params fall back to page 0, the configured
        default size and amount ascending. Sizes above the configured maximum
        are clamped.

        Raises:
            InvalidCardInput: On a negative or non-integer page, a size below
                one, an unknown sort field or an unknown direction.
        """
        page = _parse_int(params.get("page"), "page", default=0)
        if page < 0:
            raise InvalidCardInput("Page index must not be negative.")

        size = _parse_int(params.get("size"), "size", default=default_page_size())
        if size < 1:
            raise InvalidCardInput("Page size must be at least 1.")
        size = min(size, max_page_size())

        sort = []
        for value in params.getlist("sort"):
            sort.extend(parse_sort(value))

        return cls(page=page, size=size, sort=tuple(sort) or DEFAULT_SORT)


def parse_sort(value: str) -> Tuple[SortOrder, ...]:
    tokens = [token.strip() for token in value.split(",") if token.strip()]
    if not tokens:
        return ()

    descending = False
    if tokens[-1].lower() in DIRECTIONS:
        descending = tokens.pop().lower() == "desc"
        if not tokens:
            raise InvalidCardInput(f"Sort '{value}' names a direction but no field.")

    orders = []
    for name in tokens:
        if name not in SORTABLE_FIELDS:
            raise InvalidCardInput(
                f"Cannot sort by '{name}'; expected one of {', '.join(SORTABLE_FIELDS)}."
            )
        orders.append(SortOrder(name, descending))
    return tuple(orders)


def default_page_size() -> int:
    return getattr(settings, "CASHCARDS_DEFAULT_PAGE_SIZE", DEFAULT_PAGE_SIZE)


def max_page_size() -> int:
    return getattr(settings, "CASHCARDS_MAX_PAGE_SIZE", MAX_PAGE_SIZE)


def _parse_int(raw, name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidCardInput(f"Query parameter '{name}' must be an integer.")
