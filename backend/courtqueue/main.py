import logging
import os
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk

from .routers import auth, courts, matches, players, queue, rotations
from .exceptions import DomainException, ProblemDetail
from .config import API_PREFIX
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

SENTRY_ENABLED = init_sentry()


def parse_allowed_origins(raw: Optional[str]) -> list[str]:
    """Split ``ALLOWED_ORIGINS`` and refuse empty or wildcard lists."""

    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    if not origins:
        raise ValueError(
            "ALLOWED_ORIGINS environment variable must be set to a comma-separated "
            "list of trusted origins."
        )
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


ALLOWED_ORIGINS = parse_allowed_origins(os.getenv("ALLOWED_ORIGINS"))
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"

app = FastAPI(
    title="Court Queue API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)

# Fail fast if JWT_SECRET is missing or weak
auth.get_jwt_secret()


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
def problem_response(
    problem: ProblemDetail, headers: Optional[dict[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return problem_response(
        ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            instance=request.url.path,
            code=exc.code,
        )
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            instance=request.url.path,
            code=getattr(exc, "code", f"http_{exc.status_code}"),
        ),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return problem_response(
        ProblemDetail(
            title="Internal Server Error",
            status=500,
            detail=str(exc),
            instance=request.url.path,
            code="internal_server_error",
        )
    )


# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------
@app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
def root_healthz():
    return {"status": "ok"}


api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok"}


@api_router.post("/sentry-test", tags=["health"])
def sentry_test_check():
    if not SENTRY_ENABLED:
        raise HTTPException(status_code=400, detail="Sentry is not configured (SENTRY_DSN missing)")

    event_id = sentry_sdk.capture_message("Sentry self-test trigger", level="info")
    return {"status": "sent", "eventId": str(event_id)}


v0_router = APIRouter(prefix="/v0")
for module in (auth, rotations, courts, players, queue, matches):
    v0_router.include_router(module.router)

api_router.include_router(v0_router)
app.include_router(api_router)
logger.info("Court queue API mounted at %s/v0", API_PREFIX)
