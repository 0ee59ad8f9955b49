import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

import db_manager
from config import get_settings
from core_logic import ResourceNotFoundException, UnauthorizedException
from encoding import get_obfuscator
from limiter import limiter
from models import ErrorResponse, PayoutDetailResponse, PayoutPageResponse, PayoutResponse
from obfuscation import IdObfuscator, InvalidToken, TokenMode
from pagination import RESULTS_PER_PAGE, build_page_query, fetch_page

# --- Router Setup ---

api_router = APIRouter(
    prefix="/v2",
    tags=["Payouts"],
)

web_router = APIRouter()

logger = logging.getLogger(f"payouts_api.{__name__}")

# --- Dependencies ---

def get_current_tenant(x_tenant_id: Optional[str] = Header(None)) -> int:
    """
    Resolves the seller the request acts for. The upstream auth gateway
    authenticates the caller and forwards the resolved seller ID in X-Tenant-Id.
    """
    if not x_tenant_id or not (x_tenant_id.isascii() and x_tenant_id.isdigit()):
        raise UnauthorizedException("Missing or invalid tenant.")
    tenant_id = int(x_tenant_id)
    if tenant_id > db_manager.MAX_INTEGER:
        raise UnauthorizedException("Missing or invalid tenant.")
    return tenant_id

# --- API Routes ---

@api_router.get(
    "/payouts",
    response_model=PayoutPageResponse,
    response_model_exclude_none=True,
    summary="List payouts",
    name="list_payouts",
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request: Malformed date or page_key."},
        401: {"model": ErrorResponse, "description": "Unauthorized: No tenant resolved."},
    }
)
@limiter.limit(lambda: get_settings().rate_limit_list)
async def list_payouts(
    request: Request,
    after: Optional[str] = Query(None, description="Only payouts created on or after this date (YYYY-MM-DD)"),
    before: Optional[str] = Query(None, description="Only payouts created before this date (YYYY-MM-DD)"),
    page_key: Optional[str] = Query(None, description="Opaque key returned as next_page_key"),
    tenant_id: int = Depends(get_current_tenant),
    obfuscator: IdObfuscator = Depends(get_obfuscator),
):
    """Lists the seller's payouts, newest first, in fixed-size pages."""
    query = build_page_query(tenant_id, obfuscator, after=after, before=before, page_key=page_key)
    page = await fetch_page(query, db_manager.fetch_payouts, obfuscator, page_size=RESULTS_PER_PAGE)

    response = PayoutPageResponse(
        items=[PayoutResponse.from_record(row, obfuscator) for row in page.rows]
    )
    if page.has_next:
        next_url = request.url.include_query_params(page_key=page.next_page_key)
        response.next_page_key = page.next_page_key
        response.next_page_url = f"{next_url.path}?{next_url.query}"
    return response


@api_router.get(
    "/payouts/{payout_id}",
    response_model=PayoutDetailResponse,
    summary="Get Payout Details",
    name="get_payout",
    responses={404: {"model": ErrorResponse, "description": "Not Found: The payout does not exist."}}
)
@limiter.limit(lambda: get_settings().rate_limit_show)
async def get_payout(
    request: Request,
    payout_id: str,
    tenant_id: int = Depends(get_current_tenant),
    obfuscator: IdObfuscator = Depends(get_obfuscator),
):
    """Retrieves one of the seller's payouts by its public ID."""
    try:
        internal_id = obfuscator.decode(payout_id, TokenMode.GENERAL)
    except InvalidToken:
        logger.warning(f"Rejected payout token for tenant {tenant_id}")
        raise ResourceNotFoundException("The payout was not found.")

    record = await db_manager.get_payout_for_user(internal_id, tenant_id)
    if not record:
        raise ResourceNotFoundException("The payout was not found.")

    return PayoutDetailResponse(payout=PayoutResponse.from_record(record, obfuscator))

# --- Monitoring ---

@web_router.get("/health", summary="Health Check", tags=["Monitoring"])
async def health_check():
    """Health check endpoint"""
    try:
        with db_manager.get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return {"status": "healthy", "database": "connected", "timestamp": datetime.now(timezone.utc).isoformat()}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503,
            content={"status": "unhealthy", "database": "error"})
