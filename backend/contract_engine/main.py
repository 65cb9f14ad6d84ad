"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contract_engine.config import settings
from contract_engine.database import Base, engine
from contract_engine.exceptions import ContractError
from contract_engine.log_config import configure_logging

# Import routers
from contract_engine.routers import contracts, cancellations, versions, templates
from contract_engine.services.notifier import configure_redis_fanout, notifier

# Import all models so Base.metadata knows about them
from contract_engine.models.contract import Contract                        # noqa: F401
from contract_engine.models.contract_version import ContractVersion         # noqa: F401
from contract_engine.models.contract_transition import ContractTransition   # noqa: F401
from contract_engine.models.contract_template import ContractTemplate       # noqa: F401

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Contract Engine",
    description="Versioned two-party contracts: draft, publish, sign and bilateral cancellation",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ContractError)
async def contract_error_handler(request: Request, exc: ContractError):
    logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


# Register routers
app.include_router(contracts.router, prefix="/api/contracts", tags=["Contracts"])
app.include_router(cancellations.router, prefix="/api/contracts", tags=["Cancellation"])
app.include_router(versions.router, prefix="/api/contracts", tags=["Versions"])
app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode) and attach Redis fan-out."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    app.state.redis_unsubscribe = configure_redis_fanout(notifier, settings.REDIS_URL)


@app.on_event("shutdown")
def on_shutdown():
    unsubscribe = getattr(app.state, "redis_unsubscribe", None)
    if unsubscribe is not None:
        unsubscribe()
    notifier.shutdown()


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
