# mongodb.py

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from app.core.config import (
    MONGO_URI,
    MONGO_DB,
    COLLECTION_VENDORS,
    COLLECTION_VEHICLES,
    COLLECTION_DRIVERS,
    COLLECTION_DOCUMENTS,
)
from app.utiles.logger import get_logger

logger = get_logger(__name__)


async def connect_to_mongo(uri: Optional[str] = None, db_name: Optional[str] = None):
    """Connect to MongoDB when app starts. Returns (client, db)."""
    client = AsyncIOMotorClient(uri or MONGO_URI)
    db = client[db_name or MONGO_DB]

    # Ensure indexes are created
    await ensure_indexes(db)

    logger.info("✅ MongoDB connection established")
    return client, db


async def close_mongo_connection(client: Optional[AsyncIOMotorClient]):
    """Close MongoDB connection when app shuts down."""
    if client:
        client.close()
        logger.warning("⚠️ MongoDB connection closed")


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Create necessary indexes for collections."""
    # ---------------- Vendors ----------------
    await db[COLLECTION_VENDORS].create_index("vendor_id", unique=True)
    await db[COLLECTION_VENDORS].create_index("email", unique=True)
    await db[COLLECTION_VENDORS].create_index("parent_vendor_id")
    await db[COLLECTION_VENDORS].create_index([("parent_vendor_id", 1), ("vendor_type", 1)])

    # ---------------- Vehicles ----------------
    await db[COLLECTION_VEHICLES].create_index("vehicle_id", unique=True)
    await db[COLLECTION_VEHICLES].create_index("registration_number", unique=True)
    await db[COLLECTION_VEHICLES].create_index("vendor_id")

    # ---------------- Drivers ----------------
    await db[COLLECTION_DRIVERS].create_index("driver_id", unique=True)
    await db[COLLECTION_DRIVERS].create_index("email", unique=True)
    await db[COLLECTION_DRIVERS].create_index("vendor_id")

    # ---------------- Documents ----------------
    await db[COLLECTION_DOCUMENTS].create_index("document_id", unique=True)
    await db[COLLECTION_DOCUMENTS].create_index([("entity_type", 1), ("entity_id", 1)])
    await db[COLLECTION_DOCUMENTS].create_index("vendor_id")
    await db[COLLECTION_DOCUMENTS].create_index("expiry_date")
    await db[COLLECTION_DOCUMENTS].create_index("status")

    logger.info("✅ Indexes ensured for Vendors, Vehicles, Drivers and Documents")
