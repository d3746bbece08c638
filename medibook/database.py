"""MongoDB database connection manager."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from beanie import init_beanie
from typing import Optional

from medibook.config import settings
from medibook.core.logging import logger
from medibook.features.auth.models import User
from medibook.features.doctors.models import Doctor
from medibook.features.patients.models import Patient
from medibook.features.receptionists.models import Receptionist
from medibook.features.appointments.models import Appointment, AppointmentSlot


# Every document model, registered once at startup
DOCUMENT_MODELS = [
    User,
    Doctor,
    Patient,
    Receptionist,
    Appointment,
    AppointmentSlot,
]


async def init_models(database: AsyncIOMotorDatabase) -> None:
    """Initialize Beanie and build the indexes, unique slot index included."""
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)
        await init_models(cls.client[settings.DATABASE_NAME])
        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")
