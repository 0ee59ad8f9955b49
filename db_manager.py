import sqlite3
import logging
import asyncio
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone

from pagination import PageQuery, format_timestamp, parse_timestamp

# --- Environment Setup ---

logger = logging.getLogger(f"payouts_api.{__name__}")

# --- Constants & Globals ---

DB_FILE = "payouts.db"
# Largest value an sqlite INTEGER column can hold.
MAX_INTEGER = 2**63 - 1

PAYOUT_STATES = ("creating", "processing", "completed", "failed", "cancelled", "returned")
# Payouts still being created are not shown to sellers.
DISPLAYABLE_STATES = tuple(s for s in PAYOUT_STATES if s != "creating")

# --- Database Connection ---

def get_db_connection():
    """Returns a connection to the SQLite database."""
    conn = sqlite3.connect(DB_FILE)
    conn.row_factory = sqlite3.Row
    return conn

def init_db():
    """Initializes the database and creates the 'payouts' table if it doesn't exist."""
    with get_db_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS payouts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                amount_cents INTEGER NOT NULL,
                currency TEXT NOT NULL DEFAULT 'USD',
                state TEXT NOT NULL DEFAULT 'creating',
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS index_payouts_on_user_id_and_created_at
            ON payouts (user_id, created_at DESC, id DESC)
        """)
        conn.commit()
    logger.info("Database initialized successfully.")

def _row_to_payout(row: sqlite3.Row) -> Dict[str, Any]:
    payout = dict(row)
    payout["created_at"] = parse_timestamp(payout["created_at"])
    return payout

# --- Predicate Construction ---

def _payout_filters(query: PageQuery) -> Tuple[str, List[Any]]:
    """Builds the WHERE clause for a page of a seller's displayable payouts."""
    placeholders = ", ".join("?" for _ in DISPLAYABLE_STATES)
    clauses = ["user_id = ?", f"state IN ({placeholders})"]
    params: List[Any] = [query.tenant_id, *DISPLAYABLE_STATES]

    if query.after:
        clauses.append("created_at >= ?")
        params.append(format_timestamp(query.after_datetime))
    if query.before:
        clauses.append("created_at < ?")
        params.append(format_timestamp(query.before_datetime))
    if query.boundary:
        # Rows strictly after the boundary on (created_at DESC, id DESC).
        boundary_ts = format_timestamp(query.boundary.created_at)
        clauses.append("(created_at < ? OR (created_at = ? AND id < ?))")
        params.extend([boundary_ts, boundary_ts, query.boundary.id])

    return " AND ".join(clauses), params

# --- Public Database Operations ---

async def create_payout(
    user_id: int,
    amount_cents: int,
    currency: str = "USD",
    state: str = "completed",
    created_at: Optional[datetime] = None
) -> int:
    if state not in PAYOUT_STATES:
        raise ValueError(f"Unknown payout state '{state}'.")
    created_at = created_at or datetime.now(timezone.utc)

    loop = asyncio.get_running_loop()
    def db_insert():
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO payouts (user_id, amount_cents, currency, state, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, amount_cents, currency, state, format_timestamp(created_at))
            )
            conn.commit()
            return cursor.lastrowid
    return await loop.run_in_executor(None, db_insert)

async def get_payout_for_user(payout_id: int, user_id: int) -> Optional[Dict[str, Any]]:
    """Fetches a displayable payout only if it belongs to the given seller."""
    loop = asyncio.get_running_loop()
    def db_fetch():
        placeholders = ", ".join("?" for _ in DISPLAYABLE_STATES)
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM payouts WHERE id = ? AND user_id = ? AND state IN ({placeholders})",
                (payout_id, user_id, *DISPLAYABLE_STATES)
            )
            row = cursor.fetchone()
            return _row_to_payout(row) if row else None
    return await loop.run_in_executor(None, db_fetch)

async def fetch_payouts(query: PageQuery, limit: int) -> List[Dict[str, Any]]:
    """Fetches up to `limit` payouts matching the query, newest first."""
    where, params = _payout_filters(query)
    loop = asyncio.get_running_loop()
    def db_fetch():
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM payouts WHERE {where} ORDER BY created_at DESC, id DESC LIMIT ?",
                (*params, limit)
            )
            return [_row_to_payout(row) for row in cursor.fetchall()]
    return await loop.run_in_executor(None, db_fetch)

async def delete_payout(payout_id: int):
    loop = asyncio.get_running_loop()
    def db_delete():
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM payouts WHERE id = ?", (payout_id,))
            conn.commit()
            return cursor.rowcount
    return await loop.run_in_executor(None, db_delete)
