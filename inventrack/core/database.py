import logging

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from inventrack.core.config import settings
from inventrack.models.audit import AuditLog
from inventrack.models.bill import Bill, BillSequence
from inventrack.models.branch import Branch
from inventrack.models.inventory import BranchInventory, InventoryItem

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [Branch, BranchInventory, InventoryItem, Bill, BillSequence, AuditLog]

_client = None


async def init_db(client=None):
    """Connect to MongoDB and initialize Beanie.

    Tests pass an in-memory client; the app connects with ``MONGODB_URL``.
    """
    global _client
    if client is None:
        client = AsyncIOMotorClient(settings.MONGODB_URL)
    _client = client

    await init_beanie(
        database=client.get_database(settings.DATABASE_NAME),
        document_models=DOCUMENT_MODELS,
    )

    logger.info("Beanie initialized with database '%s'", settings.DATABASE_NAME)


def get_client():
    """Client used to open sessions for multi-document transactions."""
    if _client is None:
        raise RuntimeError("Database is not initialized")
    return _client
