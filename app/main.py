from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import Base, engine
from app.models import otp, patient, user  # noqa: F401  (register tables)
from app.routers import admin, auth, doctors, patients, referrals
from app.services.otp_purge_service import otp_purge_scheduler
from app.utils.errors import AppError
from app.utils.logger import configure_logging
from app.utils.response import create_response, handle_exception
from seed import run_seed

configure_logging()

app = FastAPI(title=settings.PROJECT_NAME)

# Auto create tables
Base.metadata.create_all(bind=engine)

# CORS for SPA / API access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    run_seed()
    await otp_purge_scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    await otp_purge_scheduler.stop()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    # Raised from dependencies (auth guards) outside the routers' try blocks
    return handle_exception(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    missing_fields, invalid_fields = [], []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        if error.get("type") == "missing":
            missing_fields.append(field)
        else:
            invalid_fields.append({"field": field, "message": error.get("msg")})

    message = "All fields are required" if missing_fields else "Invalid request payload"
    return create_response(
        message=message,
        data={"missing_fields": missing_fields, "invalid_fields": invalid_fields},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


# Add routes
app.include_router(auth.router)
app.include_router(doctors.router)
app.include_router(patients.router)
app.include_router(referrals.router)
app.include_router(admin.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Medical API running",
            data={"service": "medical-backend"},
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)


@app.get("/api-info")
def api_info():
    return create_response(
        message="API information",
        data={
            "service": settings.PROJECT_NAME,
            "docs_url": app.docs_url,
            "token_expiry_minutes": settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            "otp_ttl_minutes": settings.OTP_TTL_MINUTES,
        },
        status_code=status.HTTP_200_OK,
    )
