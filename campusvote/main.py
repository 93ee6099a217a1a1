"""FastAPI main application for the campusvote election engine."""

from contextlib import asynccontextmanager

import asyncpg
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from campusvote.api.routes import ballots, candidates, participation, results
from campusvote.core.config import get_settings, settings
from campusvote.core.database import close_db_pool, init_db_pool
from campusvote.core.logging_config import election_logger, get_logger, setup_logging
from campusvote.core.responses import error_response_dict
from campusvote.engine.errors import (
    BallotNotOpenError,
    CandidacyRejected,
    ConcurrentAdmissionError,
    ConfigurationError,
    DataIntegrityError,
    ElectionNotAvailableError,
    InvalidBallotChoiceError,
    VoterNotEligibleError,
)

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - runs on startup and shutdown."""
    current_settings = get_settings()
    logger.info("Starting campusvote backend...")
    logger.info(f"Environment: {current_settings.ENVIRONMENT}")

    # Initialize async database pool (skip in test environment)
    if current_settings.ENVIRONMENT != "test":
        await init_db_pool(current_settings)

    yield

    if current_settings.ENVIRONMENT != "test":
        await close_db_pool()
    logger.info("Shutting down campusvote backend...")


app = FastAPI(
    title="campusvote",
    description="""
    **campusvote** - School election eligibility and results tallying engine

    Features:
    - Per-position ballot state for a voter (eligibility, time window, voted)
    - Participation confirmation for departmental elections
    - Candidacy validation with capacity and partylist rules
    - Ranked, deterministic results per position, globally or per department
    - Turnout statistics

    Voter identity is resolved by the calling layer; endpoints take voter IDs.

    ## API Versioning

    - `/v1/*` - Version 1 (current stable)
    - `/*` - Latest version (may change)
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

if settings.ENVIRONMENT == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
    )


def _error(message: str, status_code: int, data=None, errors=None):
    return error_response_dict(
        {"success": False, "message": message, "data": data, "errors": errors},
        status_code,
    )


# ============================================
# ENGINE EXCEPTION HANDLERS
# ============================================


@app.exception_handler(CandidacyRejected)
async def candidacy_rejected_handler(request: Request, exc: CandidacyRejected):
    """Refused candidacies: the first violation is the message, all are listed."""
    return _error(
        exc.message,
        400,
        data={"violations": [v.model_dump() for v in exc.violations]},
        errors={"kind": exc.primary.kind if exc.primary else None},
    )


@app.exception_handler(BallotNotOpenError)
async def ballot_not_open_handler(request: Request, exc: BallotNotOpenError):
    """Ballots submitted outside the Open state, including repeat submissions."""
    return _error(exc.message, 409, data={"state": exc.state})


@app.exception_handler(ElectionNotAvailableError)
@app.exception_handler(VoterNotEligibleError)
@app.exception_handler(InvalidBallotChoiceError)
async def user_error_handler(request: Request, exc):
    """Requests the voter can correct."""
    return _error(exc.message, 400, errors=exc.details)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Bad administrative data; the affected position is not available."""
    election_logger.log_configuration_error(exc.message, exc.details)
    return _error(
        "Position is not configured for voting",
        409,
        errors={"configuration": exc.message, **exc.details},
    )


@app.exception_handler(ConcurrentAdmissionError)
async def concurrent_admission_handler(request: Request, exc: ConcurrentAdmissionError):
    return _error(exc.message, 409, errors=exc.details)


@app.exception_handler(DataIntegrityError)
async def data_integrity_handler(request: Request, exc: DataIntegrityError):
    """Corrupted stored data aborts the request; nothing is repaired."""
    logger.error(f"Data integrity error: {exc.message} {exc.details}")
    return _error("Stored election data failed an integrity check", 500)


# ============================================
# GENERIC EXCEPTION HANDLERS
# ============================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with standardized error responses."""
    # If the detail is already a dict (from our error_response), use it directly
    if isinstance(exc.detail, dict):
        return error_response_dict(exc.detail, exc.status_code)
    return _error(exc.detail, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    errors = {}
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors[field] = error["msg"]

    return _error("Validation failed", 422, errors=errors)


@app.exception_handler(asyncpg.exceptions.PostgresError)
async def database_exception_handler(
    request: Request, exc: asyncpg.exceptions.PostgresError
):
    """Handle database errors."""
    logger.error(f"Database error: {exc}", exc_info=True)
    return _error("Database error occurred", 500)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return _error("An unexpected error occurred", 500)


# Create versioned API router
v1_router = APIRouter(prefix="/v1")

v1_router.include_router(ballots.router)
v1_router.include_router(participation.router)
v1_router.include_router(candidates.router)
v1_router.include_router(results.router)

app.include_router(v1_router)

# Also include routers at root level (latest version)
app.include_router(ballots.router)
app.include_router(participation.router)
app.include_router(candidates.router)
app.include_router(results.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "campusvote API", "version": "1.0.0", "docs": "/docs"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
