"""
Shared fixtures for nounkit tests.
"""

import pytest

from nounkit.context import FixedBackend, UniversalContext
from nounkit.lifecycle import get_context, get_controller
from nounkit.providers.memory import MemoryNounProvider
from nounkit.schema.registry import reset_registry

NOUNKIT_ENV = (
    "NOUNKIT_ENDPOINT",
    "NOUNKIT_API_KEY",
    "NOUNKIT_TENANT",
    "NOUNKIT_DATA_DIR",
    "NOUNKIT_CONTEXT_BASE",
    "NOUNKIT_REMOTE_BASE",
)


@pytest.fixture(autouse=True)
def clean_global_state(monkeypatch):
    """Reset the process-wide lifecycle, registry and hooks around each test."""
    for name in NOUNKIT_ENV:
        monkeypatch.delenv(name, raising=False)
    get_controller().reset()
    get_context().hooks.clear()
    reset_registry()
    yield
    get_controller().reset()
    get_context().hooks.clear()
    reset_registry()


@pytest.fixture
def provider():
    """Fresh in-memory provider."""
    return MemoryNounProvider()


@pytest.fixture
def ctx(provider):
    """Isolated context over an in-memory provider."""
    return UniversalContext(backend=FixedBackend(provider))


@pytest.fixture
def crm(ctx):
    """Context with a small CRM: Company, Contact, Deal, Campaign."""
    ctx.define("Company", {
        "name": "string!",
        "contacts": "<- Contact.company[]",
    })
    ctx.define("Contact", {
        "name": "string!",
        "email": "string##",
        "stage": "Lead | Qualified | Customer | Churned",
        "company": "-> Company",
        "qualify": "Qualified",
        "convert": "Customer",
    })
    ctx.define("Deal", {
        "title": "string!",
        "value": "number",
        "contact": "-> Contact",
        "close": "Won",
    })
    ctx.define("Campaign", {
        "name": "string!",
        "status": "Draft | Scheduled | Active | Paused | Completed | Cancelled",
        "launch": "Launched",
        "pause": "Paused",
    })
    return ctx
