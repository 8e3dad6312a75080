"""
ROTEM Assist - FastAPI Application

Thin HTTP surface over the coagulation decision engine:
- Recommendation evaluation for one ROTEM panel
- Read-only threshold / phase reference data
- Health check
"""
from contextlib import asynccontextmanager
from datetime import datetime

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables before settings are read
load_dotenv()

from rotem_assist.config import settings
from rotem_assist.core.coagulation import RotemDecisionEngine, get_threshold_table
from rotem_assist.models.rotem import (
    HealthResponse,
    RecommendationRequest,
    RecommendationResponse,
    ThresholdsResponse,
)
from rotem_assist.utils import (
    EvaluationError,
    RotemAssistError,
    get_logger,
    setup_logging,
)

setup_logging(level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)

# ---- Engine Singleton ----
# Stateless over an immutable threshold table; shared by all requests.
_engine = RotemDecisionEngine(get_threshold_table(settings.rotem_protocol))


# ---- Application Lifespan ----

@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.engine = _engine
    logger.info(f"{settings.app_name} v{settings.app_version} ready (protocol {_engine.protocol})")
    yield
    logger.info(f"{settings.app_name} shut down.")


# ---- FastAPI Application ----

app = FastAPI(
    title=settings.app_name,
    description="ROTEM-guided hemostatic decision support for liver transplantation",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RotemAssistError)
async def rotem_error_handler(request: Request, exc: RotemAssistError):
    status_code = 500 if isinstance(exc, EvaluationError) else 400
    if status_code == 500:
        logger.error(f"{request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.url.path}: rejected input ({exc.message})")
    return JSONResponse(status_code=status_code, content={"success": False, "error": exc.to_dict()})


# ---- Health ----

def _health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        protocol=_engine.protocol,
        timestamp=datetime.now().isoformat(),
    )


@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """Root endpoint - service status."""
    return _health()


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return _health()


# ---- ROTEM ----

@app.post("/api/v1/rotem/recommendations", response_model=RecommendationResponse, tags=["ROTEM"])
async def rotem_recommendations(request: RecommendationRequest):
    """
    Evaluate one ROTEM panel and return the ranked hemostatic actions.

    Unknown phases are rejected with 400 and an INVALID_INPUT error body.
    """
    panel = request.to_panel()
    context = request.to_context(settings.default_weight_kg)
    report = _engine.evaluate(panel, context)
    return RecommendationResponse(success=True, evaluation=report.to_dict())


@app.get("/api/v1/rotem/thresholds", response_model=ThresholdsResponse, tags=["ROTEM"])
async def rotem_thresholds():
    """Threshold table and phase enumeration of the active protocol."""
    return ThresholdsResponse(success=True, **_engine.reference_data())


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
