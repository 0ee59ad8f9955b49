"""
Cursor pagination over a collection ordered by ``(created_at DESC, id DESC)``.

A page key names the last row of the previous page as
``"<created_at>-<numeric token>"``. The timestamp uses a fixed width, microsecond
format so rows sharing a timestamp are still ordered by ID, and the numeric token
is the row ID passed through the obfuscation engine. Page keys encode a position,
not a snapshot: rows inserted behind the boundary while a client is paging are
not returned to that client.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core_logic import BadRequestException
from obfuscation import IdObfuscator, InvalidToken, TokenMode

logger = logging.getLogger(f"payouts_api.{__name__}")

RESULTS_PER_PAGE = 10

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
PAGE_KEY_DELIMITER = "-"

INVALID_PAGE_KEY = "Invalid page_key."


class InvalidPageKey(ValueError):
    pass


def format_timestamp(value: datetime) -> str:
    """Renders a datetime in UTC using the fixed storage/page key format."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    # %Y is not zero padded below year 1000 on every platform.
    return f"{value.year:04d}" + value.strftime("-%m-%d %H:%M:%S.%f")


def parse_timestamp(text: str) -> datetime:
    """Inverse of format_timestamp. Only the canonical form is accepted."""
    parsed = datetime.strptime(text, TIMESTAMP_FORMAT)
    if format_timestamp(parsed) != text:
        raise ValueError(f"Timestamp '{text}' is not in canonical form")
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class PageKey:
    created_at: datetime
    id: int


def encode_page_key(key: PageKey, obfuscator: IdObfuscator) -> str:
    token = obfuscator.encode(key.id, TokenMode.NUMERIC)
    return f"{format_timestamp(key.created_at)}{PAGE_KEY_DELIMITER}{token}"


def decode_page_key(page_key: str, obfuscator: IdObfuscator) -> PageKey:
    """
    Splits a page key on its last delimiter and decodes both halves.
    Every failure surfaces as the same InvalidPageKey so callers cannot tell
    which half was rejected.
    """
    timestamp_part, sep, token = page_key.rpartition(PAGE_KEY_DELIMITER)
    if not sep:
        raise InvalidPageKey(INVALID_PAGE_KEY)
    try:
        created_at = parse_timestamp(timestamp_part)
        payout_id = obfuscator.decode(token, TokenMode.NUMERIC)
    except (ValueError, InvalidToken) as e:
        raise InvalidPageKey(INVALID_PAGE_KEY) from e
    return PageKey(created_at=created_at, id=payout_id)


def parse_date_param(value: Optional[str], field_name: str) -> Optional[date]:
    if value is None:
        return None
    try:
        parsed = datetime.strptime(value, DATE_FORMAT).date()
        if parsed.isoformat() != value:
            raise ValueError(f"Date '{value}' is not in canonical form")
        return parsed
    except ValueError:
        raise BadRequestException(
            f"Invalid date format provided in field '{field_name}'. "
            "Dates must be in the format YYYY-MM-DD.",
            field=field_name,
        )


@dataclass(frozen=True)
class PageQuery:
    """Everything that selects one page: tenant scope, date bounds and boundary row."""
    tenant_id: int
    after: Optional[date] = None
    before: Optional[date] = None
    boundary: Optional[PageKey] = None

    @property
    def after_datetime(self) -> Optional[datetime]:
        return datetime.combine(self.after, time.min, tzinfo=timezone.utc) if self.after else None

    @property
    def before_datetime(self) -> Optional[datetime]:
        return datetime.combine(self.before, time.min, tzinfo=timezone.utc) if self.before else None


@dataclass
class Page:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    next_page_key: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return self.next_page_key is not None


def build_page_query(
    tenant_id: int,
    obfuscator: IdObfuscator,
    after: Optional[str] = None,
    before: Optional[str] = None,
    page_key: Optional[str] = None,
) -> PageQuery:
    """Validates raw request parameters. Raises BadRequestException."""
    end_date = parse_date_param(before, "before")
    start_date = parse_date_param(after, "after")

    boundary = None
    if page_key:
        try:
            boundary = decode_page_key(page_key, obfuscator)
        except InvalidPageKey:
            logger.warning(f"Rejected page_key for tenant {tenant_id}")
            raise BadRequestException(INVALID_PAGE_KEY, field="page_key")

    return PageQuery(tenant_id=tenant_id, after=start_date, before=end_date, boundary=boundary)


async def fetch_page(
    query: PageQuery,
    fetch_rows: Callable[[PageQuery, int], Awaitable[List[Dict[str, Any]]]],
    obfuscator: IdObfuscator,
    page_size: int = RESULTS_PER_PAGE,
) -> Page:
    """
    Fetches one row beyond the page size to learn whether another page exists,
    and if so encodes the last returned row as the next page key.
    """
    rows = await fetch_rows(query, page_size + 1)
    has_next_page = len(rows) > page_size
    rows = rows[:page_size]

    next_page_key = None
    if has_next_page:
        last = rows[-1]
        next_page_key = encode_page_key(PageKey(created_at=last["created_at"], id=last["id"]), obfuscator)
    return Page(rows=rows, next_page_key=next_page_key)
