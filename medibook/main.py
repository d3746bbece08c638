from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from medibook.config import settings
from medibook.database import Database
from medibook.features.users.router import router as users_router
from medibook.features.doctors.router import router as doctors_router
from medibook.features.receptionists.router import router as receptionists_router
from medibook.features.patients.router import router as patients_router
from medibook.features.appointments.router import router as appointments_router
from medibook.shared.exceptions import register_exception_handlers
from medibook.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI application."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} API...")
    await Database.connect_db()
    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await Database.close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Hospital appointment booking and access control API",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(users_router, prefix=settings.API_V1_PREFIX)
app.include_router(doctors_router, prefix=settings.API_V1_PREFIX)
app.include_router(receptionists_router, prefix=settings.API_V1_PREFIX)
app.include_router(patients_router, prefix=settings.API_V1_PREFIX)
app.include_router(appointments_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
    }
