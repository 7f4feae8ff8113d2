"""
Main FastAPI application
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from hostel_complaints.config import get_settings
from hostel_complaints.database import engine, Base, AsyncSessionLocal
from hostel_complaints.exceptions import ComplaintServiceError
from hostel_complaints.models import User, UserRole
from hostel_complaints.api.auth import get_password_hash
from hostel_complaints.api import auth, complaints, notifications, feature_toggles, analytics, realtime
from hostel_complaints.services.feature_toggles import seed_default_toggles
from hostel_complaints.utils.logger import configure_logging

settings = get_settings()
logger = logging.getLogger(__name__)


async def seed_defaults(session: AsyncSession) -> None:
    """Default admin account and feature toggles; safe to run on every start"""
    if settings.DEFAULT_ADMIN_EMAIL:
        email = settings.DEFAULT_ADMIN_EMAIL.lower()
        result = await session.execute(select(User).where(User.email == email))
        if not result.scalar_one_or_none():
            session.add(User(
                name=settings.DEFAULT_ADMIN_NAME,
                email=email,
                hashed_password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
                role=UserRole.ADMIN,
            ))
            logger.info(f"Created default admin user {email}")

    created = await seed_default_toggles(session)
    if created:
        logger.info(f"Seeded {created} default feature toggles")

    await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    async with AsyncSessionLocal() as session:
        await seed_defaults(session)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ComplaintServiceError)
async def service_error_handler(request: Request, exc: ComplaintServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def jsonable_errors(errors):
    return [
        {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in errors
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "errors": jsonable_errors(errors)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(complaints.router, prefix="/api/complaints", tags=["Complaints"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(feature_toggles.router, prefix="/api/feature-toggles", tags=["Feature Toggles"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(realtime.router, tags=["Realtime"])

# Uploaded proof images
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hostel_complaints.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
