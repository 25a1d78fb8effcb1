from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from loguru import logger

from staffhub.config import MONGO_URI, DATABASE_NAME

client = None
db = None


async def connect_to_mongo():
    global client, db

    if not MONGO_URI:
        raise ValueError("MONGO_URI environment variable is not set! Check your .env file.")

    client = AsyncIOMotorClient(MONGO_URI)
    db = client[DATABASE_NAME]
    await client.admin.command("ping")

    if "mongodb+srv" in MONGO_URI:
        logger.info(f"Connected to MongoDB Atlas (database={DATABASE_NAME})")
    else:
        logger.warning(f"Connected to LOCAL MongoDB (database={DATABASE_NAME})")

    await ensure_indexes(db)


async def close_mongo_connection():
    if client:
        client.close()


async def ensure_indexes(database):
    """Create the indexes the lifecycle relies on.

    The (requirement_id, resource_id) unique index is what rejects concurrent
    duplicate submissions; the rest back the list/count queries.
    """
    applications = database.applications
    await applications.create_index(
        [("requirement_id", ASCENDING), ("resource_id", ASCENDING)],
        unique=True,
        name="requirement_resource_unique",
    )
    await applications.create_index([("status", ASCENDING)])
    await applications.create_index([("created_by", ASCENDING)])
    await applications.create_index([("created_at", DESCENDING)])
    await applications.create_index(
        [("organization_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]
    )
    await applications.create_index(
        [("requirement_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]
    )
    await applications.create_index(
        [("resource_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]
    )

    await database.application_history.create_index(
        [("application_id", ASCENDING), ("created_at", DESCENDING)]
    )
    await database.application_history.create_index([("organization_id", ASCENDING)])

    await database.workflow_configurations.create_index(
        [("is_active", ASCENDING), ("application_types", ASCENDING)]
    )
    await database.workflow_configurations.create_index([("is_default", ASCENDING)])

    await database.workflow_instances.create_index([("application_id", ASCENDING)])
    await database.workflow_instances.create_index(
        [("workflow_configuration_id", ASCENDING), ("status", ASCENDING)]
    )

    await database.notifications.create_index(
        [("recipient", ASCENDING), ("created_at", DESCENDING)]
    )


def get_db():
    return db
