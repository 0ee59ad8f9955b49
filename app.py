from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler, errors
from starlette.exceptions import HTTPException

from config import get_settings
from core_logic import setup_logging
from db_manager import init_db
from limiter import limiter
from obfuscation import InvalidToken
from router import api_router, web_router

logger = setup_logging()

# --- LIFESPAN AND APP SETUP ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    get_settings().validate_startup()
    init_db()
    logger.info("Application started successfully")
    yield
    logger.info("Application shutdown complete")

# Main app instance
app = FastAPI(
    title="Payouts API",
    lifespan=lifespan
)

# --- MIDDLEWARE ---
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.state.limiter = limiter
app.add_exception_handler(errors.RateLimitExceeded, _rate_limit_exceeded_handler)

# --- APPLICATION MOUNTING ---

app.include_router(api_router)
app.include_router(web_router)

# --- GLOBAL ERROR HANDLERS ---

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"status": exc.status_code, "error": exc.detail})

@app.exception_handler(InvalidToken)
async def invalid_token_handler(request: Request, exc: InvalidToken):
    # A token that escaped the route handlers still means "no such resource".
    logger.warning(f"Unhandled invalid token on {request.url.path}")
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND,
        content={"status": status.HTTP_404_NOT_FOUND, "error": "Resource not found"})


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
