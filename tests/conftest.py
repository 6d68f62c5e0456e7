from typing import Any, Dict, List, Optional

import fakeredis
import fakeredis.aioredis
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.core.config import COLLECTION_VENDORS
from app.core.container import build_services
from app.core.security import get_password_hash
from app.utiles.custom_helpers import _gen_id, _storage_now
from main import create_app


class FakeMailer:
    """Records outgoing messages; recipients in ``fail_for`` make the send raise."""

    def __init__(self):
        self.messages = []
        self.fail_for = set()

    async def send_message(self, message, template_name=None):
        recipients = [getattr(r, "email", str(r)) for r in list(message.recipients) + list(message.bcc or [])]
        if self.fail_for.intersection(recipients):
            raise ConnectionError("SMTP unavailable")
        self.messages.append(message)

    def sent_to(self) -> List[str]:
        return [getattr(r, "email", str(r)) for m in self.messages for r in m.recipients]


def _build(mailer: FakeMailer):
    db = AsyncMongoMockClient()["fleet_test"]
    redis_client = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return build_services(db, redis_client, mailer)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def services(mailer):
    return _build(mailer)


@pytest.fixture
def db(services):
    return services.db


@pytest.fixture
def client(mailer):
    app = create_app(_build(mailer))
    with TestClient(app) as test_client:
        yield test_client


async def make_vendor(
    db,
    vendor_type: str,
    parent: Optional[Dict[str, Any]] = None,
    name: Optional[str] = None,
    city: Optional[str] = None,
    zones: Optional[List[str]] = None,
    permissions: Optional[List[str]] = None,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """Insert a vendor row directly, bypassing registration rules."""
    vendor_id = _gen_id()
    now = _storage_now()
    doc = {
        "vendor_id": vendor_id,
        "name": name or f"{vendor_type.title()} Vendor",
        "email": email or f"{vendor_type.lower()}-{vendor_id[:8]}@example.com",
        "password_hash": get_password_hash("secret123"),
        "vendor_type": vendor_type,
        "parent_vendor_id": parent["vendor_id"] if parent else None,
        "permissions": permissions if permissions is not None else ["ALL"],
        "operating_area": {"city": city, "zones": zones or [], "pincodes": []},
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    await db[COLLECTION_VENDORS].insert_one(doc)
    doc.pop("_id", None)
    doc.pop("password_hash", None)
    return doc
