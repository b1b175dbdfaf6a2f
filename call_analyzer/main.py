"""
Sales Call Analyzer
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient

from call_analyzer.core.config import get_settings
from call_analyzer.routers import analysis, auth
from call_analyzer.services.controller import AnalysisController
from call_analyzer.services.google_auth import GoogleAuthManager
from call_analyzer.services.orchestrator import AnalysisOrchestrator
from call_analyzer.services.preference_store import PreferenceStore
from call_analyzer.services.sheets_service import GoogleSheetsService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def _connect_mongo(mongo_url: Optional[str]) -> Optional[AsyncIOMotorClient]:
    if not mongo_url:
        return None
    client = AsyncIOMotorClient(mongo_url)
    try:
        await client.admin.command('ping')
        logger.info("MongoDB connected successfully")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")
        client.close()
        raise
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings = get_settings()

    # Startup
    logger.info("Starting Sales Call Analyzer...")
    mongo_client = await _connect_mongo(settings.mongo_url)

    google_auth = GoogleAuthManager(settings)
    google_status = await google_auth.initialize()

    controller = AnalysisController(
        orchestrator=AnalysisOrchestrator(settings),
        sheets=GoogleSheetsService(google_auth, settings),
        auth=google_auth,
        store=PreferenceStore(mongo_client, settings),
    )
    controller.apply_google_status(google_status)
    await controller.restore_preferences()
    app.state.controller = controller

    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY is not set - analysis requests will be rejected")

    logger.info(f"Sales Call Analyzer {settings.app_version} is ready")

    yield

    # Shutdown
    logger.info("Shutting down Sales Call Analyzer...")
    if mongo_client:
        mongo_client.close()
    logger.info("Shutdown complete")


# Initialize FastAPI application
app = FastAPI(
    title="Sales Call Analyzer (TH)",
    description=(
        "AI-powered evaluation of Thai sales calls. "
        "Analyzes transcripts and recordings, enriched with Google Sheets data."
    ),
    version=get_settings().app_version,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact domains
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(analysis.router)
app.include_router(auth.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
        "groq_model": settings.groq_model,
        "transcription_model": settings.groq_transcription_model,
    }


@app.get("/health")
async def health_check():
    """Detailed health check with dependencies."""
    settings = get_settings()
    controller: Optional[AnalysisController] = getattr(app.state, "controller", None)

    mongo_status = "not configured"
    if controller and controller.store.enabled:
        try:
            await controller.store.db.client.admin.command('ping')
            mongo_status = "connected"
        except Exception as e:
            mongo_status = f"error: {str(e)}"

    google_ready = bool(controller and controller.auth.ready)

    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "dependencies": {
            "mongodb": mongo_status,
            "groq_api": "configured" if settings.groq_api_key else "missing",
            "google_oauth": "ready" if google_ready else "unavailable",
            "google_sheets_api_key": "configured" if settings.google_api_key else "missing",
        }
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "call_analyzer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info"
    )
