import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.db import SessionLocal, create_tables, dispose_engine
from app.routers.auth import router as auth_router
from app.routers.complaints import router as complaints_router
from app.routers.users_admin import router as users_router
from app.seed import seed_admin
from app.services.complaint_service import refresh_open_complaint_scores

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Database tables created/verified")
    async with SessionLocal() as session:
        await seed_admin(session)

    scheduler = None
    if settings.score_refresh_interval_minutes > 0:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            refresh_open_complaint_scores,
            "interval",
            minutes=settings.score_refresh_interval_minutes,
            args=[SessionLocal],
        )
        scheduler.start()
        logger.info(
            "Priority refresh scheduler started, every %d minutes",
            settings.score_refresh_interval_minutes,
        )

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await dispose_engine()


app = FastAPI(title="College Complaint Desk API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "statusCode": exc.status_code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"success": False, "statusCode": 422, "message": message},
    )


app.include_router(auth_router, prefix="/api")
app.include_router(complaints_router, prefix="/api")
app.include_router(users_router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
