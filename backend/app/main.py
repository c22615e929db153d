import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.settings import settings, validate_settings
from app.db.session import engine
from app.models import Base
from app.routers.appointments import router as appointments_router
from app.routers.audit import router as audit_router
from app.routers.auth import router as auth_router
from app.routers.clinic import router as clinic_router
from app.routers.consultations import router as consultations_router
from app.routers.doctors import router as doctors_router
from app.routers.invoices import router as invoices_router
from app.routers.patients import router as patients_router
from app.routers.prescriptions import router as prescriptions_router
from app.routers.services import router as services_router
from app.routers.staff import router as staff_router
from app.routers.stats import router as stats_router
from app.routers.webhooks import router as webhooks_router

logger = logging.getLogger("medflow.startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_settings(settings)
    Base.metadata.create_all(bind=engine)
    logger.info("MedFlow API started (env=%s)", settings.app_env)
    yield


app = FastAPI(title="MedFlow Clinic API", version="0.1.0", lifespan=lifespan)


def _error_field(loc) -> str:
    parts = [str(part) for part in loc if part not in {"body", "query", "path", "header"}]
    return ".".join(parts) or "request"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": _error_field(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = request.headers.get("x-request-id")
    logger.exception("Unhandled server error", extra={"request_id": request_id})
    payload = {"detail": "Internal server error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(clinic_router)
app.include_router(staff_router)
app.include_router(doctors_router)
app.include_router(patients_router)
app.include_router(services_router)
app.include_router(appointments_router)
app.include_router(consultations_router)
app.include_router(prescriptions_router)
app.include_router(invoices_router)
app.include_router(webhooks_router)
app.include_router(stats_router)
app.include_router(audit_router)
