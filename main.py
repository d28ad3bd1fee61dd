"""
Wedding Transport Coordination Service - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.core.exceptions import TransportCoordinationError
from app.api import routes_admin, routes_guest, routes_public, routes_vehicles, ws
from app.utils.responses import domain_error_response

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    # Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Wedding Transport Coordination",
    description="Arrival grouping, fleet matching and travel agent coordination for wedding guests",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(TransportCoordinationError)
async def transport_error_handler(request: Request, exc: TransportCoordinationError):
    """Render domain errors in the standard error envelope"""
    return domain_error_response(exc)

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_guest.router, prefix="/guest", tags=["guest"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(routes_vehicles.router, prefix="/admin", tags=["fleet"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "service": "Wedding Transport Coordination",
        "docs": "/docs",
        "health": "/health"
    }

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
