"""Shared fixtures for roster tests."""

import os
from uuid import uuid4

import pytest

# Tests always run in memory, whatever the developer's .env says
os.environ.setdefault("ROSTER_STORAGE_BACKEND", "memory")

from roster.audit import AuditLogger
from roster.models.context import RequestContext, Role
from roster.models.state import OrgState
from roster.service import RosterService
from roster.services.storage import InMemoryAuditStorage, InMemoryStateStorage
from roster.store import RecordStore


SHIRT_SIZE = {
    "key": "shirt_size",
    "label": "Shirt size",
    "type": "select",
    "options": [{"value": "M", "label": "Medium"}],
    "required": False,
    "visibility": "public",
}


@pytest.fixture
def shirt_size_field():
    """The select field from the roster scenario: one option, public."""
    return dict(SHIRT_SIZE, options=[dict(o) for o in SHIRT_SIZE["options"]])


@pytest.fixture
def org_id():
    return uuid4()


@pytest.fixture
def state(org_id):
    return OrgState(organization_id=org_id)


@pytest.fixture
def state_storage():
    return InMemoryStateStorage()


@pytest.fixture
def store(state_storage):
    return RecordStore(state_storage)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def service(store, audit_storage):
    return RosterService(store=store, audit_logger=AuditLogger(audit_storage))


@pytest.fixture
def owner(org_id):
    return RequestContext(organization_id=org_id, role=Role.OWNER, user_id=uuid4())


@pytest.fixture
def viewer(org_id):
    return RequestContext(organization_id=org_id, role=Role.VIEWER, user_id=uuid4())
