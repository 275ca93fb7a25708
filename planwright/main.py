"""
Main FastAPI Application for Planwright.
Provides the REST endpoints for scenarios, advance types, orders and expense sheets.
"""
import logging

from fastapi import FastAPI

from planwright import __version__
from planwright.config import configure_logging
from planwright.models import init_db, SessionLocal
from planwright.domain.services import DataBootstrap
from planwright.api.v1 import api_router as v1_router

logger = logging.getLogger(__name__)

configure_logging()

# Initialize FastAPI app
app = FastAPI(
    title="Planwright",
    description="Project planning scenarios and expense tracking",
    version=__version__
)

app.include_router(v1_router)


# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    init_db()
    db = SessionLocal()
    try:
        counts = DataBootstrap(db).load_required_data()
    finally:
        db.close()
    logger.info(f"Startup complete: {counts}")


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}
