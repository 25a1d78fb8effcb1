"""
Shared fixtures: an in-memory Motor database and a cast of principals
"""
import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from staffhub.database import ensure_indexes
from staffhub.models.principal import Principal
from staffhub.models.workflow import WorkflowConfiguration, WorkflowStep

ADMIN_ORG = str(ObjectId())
CLIENT_ORG = str(ObjectId())
VENDOR_ORG = str(ObjectId())
OTHER_VENDOR_ORG = str(ObjectId())


def make_principal(user_type, organization_role=None, organization_id=None, first_name="Test", last_name="User"):
    return Principal(
        id=str(ObjectId()),
        organization_id=organization_id,
        organization_role=organization_role,
        user_type=user_type,
        first_name=first_name,
        last_name=last_name,
    )


def make_template(admin, application_types, steps=None, is_default=True, name="Approval flow"):
    return WorkflowConfiguration(
        name=name,
        application_types=application_types,
        steps=steps or [],
        is_default=is_default,
        created_by=admin.id,
        updated_by=admin.id,
    )


def two_step_flow():
    return [
        WorkflowStep(name="Client review", order=1, role="client", action="review"),
        WorkflowStep(name="Admin approval", order=2, role="admin", action="approve"),
    ]


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client["staffhub_test"]
    await ensure_indexes(database)
    yield database


@pytest.fixture
def admin():
    return make_principal("admin", "admin_owner", ADMIN_ORG, first_name="Ada", last_name="Admin")


@pytest.fixture
def admin_employee():
    return make_principal("admin", "admin_employee", ADMIN_ORG)


@pytest.fixture
def client_user():
    return make_principal("client", "client_owner", CLIENT_ORG, first_name="Carl", last_name="Client")


@pytest.fixture
def vendor():
    return make_principal("vendor", "vendor_owner", VENDOR_ORG, first_name="Vera", last_name="Vendor")


@pytest.fixture
def other_vendor():
    return make_principal("vendor", "vendor_owner", OTHER_VENDOR_ORG)


@pytest_asyncio.fixture
async def requirement_id(db, client_user):
    result = await db.requirements.insert_one({
        "title": "Senior Python Developer",
        "status": "open",
        "priority": "high",
        "created_by": client_user.id,
        "organization_id": client_user.organization_id,
    })
    return str(result.inserted_id)


@pytest_asyncio.fixture
async def resource_id(db, vendor):
    result = await db.resources.insert_one({
        "name": "Jane Doe",
        "status": "available",
        "category": "engineering",
        "created_by": vendor.id,
        "organization_id": vendor.organization_id,
    })
    return str(result.inserted_id)
