"""Main FastAPI application for the Excel Voice Interviewer."""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from voice_interviewer import __version__
from voice_interviewer.api_routes import archive_interview_result, email_interview_report, router
from voice_interviewer.config import settings
from voice_interviewer.database.db import init_db
from voice_interviewer.interview_engine import InterviewManager
from voice_interviewer.session_store import create_session_store
from voice_interviewer.socket_routes import router as socket_router

logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(
    title="Excel Voice Interviewer API",
    description="AI voice interviews assessing Excel skills, with resume-based personalisation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )
    response = await call_next(request)
    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=time.time() - start_time
    )
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        url=str(request.url)
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


app.include_router(router, prefix="/api")
app.include_router(socket_router)


@app.get("/")
async def root():
    return {
        "message": "Excel Voice Interviewer API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "websocket": "/ws",
    }


@app.get("/health")
async def health_check(request: Request):
    manager = request.app.state.interview_manager
    return {
        "status": "healthy",
        "service": "Excel Voice Interviewer API",
        "sessionStore": manager.store.backend,
        "activeConnections": manager.active_connections,
    }


@app.on_event("startup")
async def startup_event():
    logger.info("Starting Excel Voice Interviewer API")
    init_db()
    logger.info("Database initialized")

    store = await create_session_store()
    app.state.session_store = store
    app.state.interview_manager = InterviewManager(
        store,
        completion_hooks=[archive_interview_result, email_interview_report],
    )

    if not settings.GEMINI_API_KEY and settings.LLM_PROVIDER == "gemini":
        logger.warning("Gemini API key not configured - transcription disabled, fallback scoring in use")
    if not settings.ELEVENLABS_API_KEY:
        logger.warning("ElevenLabs API key not configured - silent audio placeholders in use")
    if not settings.SMTP_HOST:
        logger.warning("SMTP not configured - invitations and report emails will fail")
    logger.info("Application startup complete", session_store=store.backend)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Excel Voice Interviewer API")
    await app.state.session_store.close()
