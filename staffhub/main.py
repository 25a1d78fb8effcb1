# ========================================
# staffhub/main.py
# ========================================

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from staffhub.config import ALLOWED_ORIGINS
from staffhub.database import connect_to_mongo, close_mongo_connection, get_db
from staffhub.exceptions import StaffHubError
from staffhub.logging_config import configure_logging

# ===========================
# IMPORT ALL ROUTERS
# ===========================

# Applications
from staffhub.routes.application import router as application_router

# Workflows
from staffhub.routes.workflow import router as workflow_router

configure_logging()

# ===========================
# CREATE FASTAPI APP
# ===========================

app = FastAPI(
    title="StaffHub Applications API",
    description="Application lifecycle and approval workflows for the staffing marketplace",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# ===========================
# CORS MIDDLEWARE
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===========================
# ERROR HANDLING
# ===========================

@app.exception_handler(StaffHubError)
async def staffhub_exception_handler(request: Request, exc: StaffHubError):
    """Business errors carry their own status code"""
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# ===========================
# DATABASE EVENTS
# ===========================

@app.on_event("startup")
async def start_db():
    """Connect to MongoDB on startup"""
    await connect_to_mongo()

@app.on_event("shutdown")
async def stop_db():
    """Close MongoDB connection on shutdown"""
    await close_mongo_connection()

# ===========================
# REGISTER ROUTERS
# ===========================

app.include_router(application_router)
app.include_router(workflow_router)

# ===========================
# ROOT ENDPOINTS
# ===========================

@app.get("/")
async def root():
    return {
        "status": "✅ StaffHub Applications API Running",
        "version": "1.0.0",
        "documentation": "/docs",
        "endpoints": {
            "applications": [
                "/applications",
                "/applications/{id}",
                "/applications/{id}/status",
                "/applications/{id}/history",
                "/applications/vendor",
                "/applications/client",
                "/applications/counts/requirements",
                "/applications/counts/resources",
                "/applications/status-mapping"
            ],
            "workflows": [
                "/workflows",
                "/workflows/{id}",
                "/workflows/instances",
                "/workflows/instances/{id}/process-step",
                "/workflows/instances/{id}/cancel"
            ]
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    db = get_db()
    connected = db is not None
    if connected:
        try:
            await db.command("ping")
        except Exception as e:
            logger.error(f"Health check ping failed: {e}")
            connected = False
    return {
        "status": "healthy" if connected else "degraded",
        "database": "connected" if connected else "disconnected",
        "version": "1.0.0"
    }
