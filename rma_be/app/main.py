from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import uuid

from app.config import get_settings
from app.routers import rma, admin_rma, admin_playbooks
from app.services.errors import InvalidTransitionError, MalformedDataError, RmaError
from app.utils.storage import storage_root

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger("rma_be")

settings = get_settings()

app = FastAPI(title="RMA Service")


@app.on_event("startup")
def on_startup():
    # Ensure all DB tables exist after all models are imported
    from app.models.rma_request import Base, engine  # Base/engine single source
    import app.models.troubleshooting  # register RmaTroubleshooting model
    import app.models.playbook  # register RmaPlaybook model
    import app.models.label  # register RmaLabel model
    import app.models.audit_log  # register RmaAuditLog model
    import app.models.dw  # register order warehouse views
    Base.metadata.create_all(bind=engine)

    storage_root().mkdir(parents=True, exist_ok=True)

    from app.jobs.storage_cleanup import start_scheduler
    start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    from app.jobs.storage_cleanup import shutdown_scheduler
    shutdown_scheduler()


# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
    request.state.correlation_id = correlation_id
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    logger.info("[%s] %s %s -> %s", correlation_id, request.method, request.url.path, response.status_code)
    return response


def _correlation_id(request: Request):
    return getattr(request.state, "correlation_id", None)


@app.exception_handler(InvalidTransitionError)
def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "code": exc.code,
            "currentStatus": exc.current_status,
            "action": exc.action,
        },
    )


@app.exception_handler(MalformedDataError)
def malformed_data_handler(request: Request, exc: MalformedDataError):
    logger.error("[%s] Malformed stored data on %s: %s", _correlation_id(request), request.url.path, exc.message)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "correlationId": _correlation_id(request)},
    )


@app.exception_handler(RmaError)
def rma_error_handler(request: Request, exc: RmaError):
    content = {"detail": exc.message}
    if exc.code:
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/health")
def health():
    return {"status": "ok"}


# Include routers
app.include_router(rma.router, prefix="/api/rma", tags=["rma"])
app.include_router(admin_rma.router, prefix="/api/admin", tags=["admin-rma"])
app.include_router(admin_playbooks.router, prefix="/api/admin", tags=["admin-playbooks"])


# --- Entry point for local runs ---
if __name__ == "__main__":
    import uvicorn, os
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("app.main:app", host="0.0.0.0", port=port, reload=False)
