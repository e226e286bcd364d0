"""Pytest configuration and shared fixtures.

Provides reusable test fixtures for:
- A fake clock and a fake sleep that advances it (no real waiting)
- Fake litellm responses and a scripted completion transport
- In-memory record, state and document collaborators
- A wired StageContext, StageExecutor and Scheduler
"""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from enricher.collaborators.document_source import DocumentInfo
from enricher.collaborators.record_store import InMemoryRecordStore, write_fields
from enricher.collaborators.state_store import InMemoryStateStore
from enricher.core.completion_client import CompletionClient
from enricher.core.config import FAST_MODEL
from enricher.core.cost_tracker import CostTracker
from enricher.core.errors import NotFound
from enricher.core.extractor import SchemaExtractor
from enricher.core.pipeline_logger import get_logger, reset_logger
from enricher.pydantic_models.schema import PartitionKind, default_schema
from enricher.scheduler import Scheduler
from enricher.stages import InvocationState, StageConfig, StageContext, StageExecutor, StageResources


# =============================================================================
# Clock and sleep
# =============================================================================


class FakeClock:
    """Monotonic time that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)):
        self.start = start
        self.elapsed = 0.0

    def monotonic(self) -> float:
        return self.elapsed

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds


class FakeSleep:
    """Records every sleep and advances the clock by it."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep(clock):
    return FakeSleep(clock)


@pytest.fixture(autouse=True)
def fresh_logger():
    """Each test gets its own global pipeline logger."""
    reset_logger()
    yield
    reset_logger()


# =============================================================================
# Fake litellm responses
# =============================================================================


def _make_response(content, prompt_tokens: int = 100, completion_tokens: int = 50, grounding: dict | None = None):
    """A litellm-shaped response object."""
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )
    if grounding is not None:
        response.vertex_ai_grounding_metadata = [grounding]
    return response


def prompt_text(call_kwargs: dict) -> str:
    """Text part of the single user message sent to litellm."""
    content = call_kwargs["messages"][0]["content"]
    if isinstance(content, str):
        return content
    return "".join(part.get("text", "") for part in content if part.get("type") == "text")


FORMATTED_FIELDS = {
    "companySummary": {"description": "Makes anvils for coyotes.", "sources": ["https://acme.io/about"]},
    "risks": [
        {"description": "Customer concentration.", "sources": ["https://news.example/acme"]},
    ],
    "employeeCount": {"description": "About 40 employees.", "sources": ["LinkedIn"]},
    "isCurrentlyRaising": {"description": "yes", "sources": ["https://acme.io/press"]},
    "lastRoundType": "Seed",
}

DOCUMENT_FIELDS = {
    "arr": "EUR 1.2M (Q1 2025)",
    "cashRunway": "18 months",
    "companySummary": None,
}


class ScriptedTransport:
    """Answers litellm calls by role.

    - fast tier with a response schema: document extraction JSON
    - fast tier otherwise: formatting JSON
    - smart tier with grounding tools: research notes
    - smart tier otherwise: synthesis narrative
    - any prompt containing one of ``failures``: transport error
    """

    def __init__(self, formatted: dict | str | None = None, document: dict | None = None):
        self.formatted = formatted if formatted is not None else FORMATTED_FIELDS
        self.document = document if document is not None else DOCUMENT_FIELDS
        self.failures: list[str] = []
        self.calls: list[dict] = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        text = prompt_text(kwargs)
        if any(marker in text for marker in self.failures):
            raise ConnectionError("503 Service Unavailable")
        if kwargs["model"] == FAST_MODEL:
            if "response_format" in kwargs:
                return _make_response(json.dumps(self.document))
            if isinstance(self.formatted, str):
                return _make_response(self.formatted)
            return _make_response("```json\n" + json.dumps(self.formatted) + "\n```")
        if "tools" in kwargs:
            return _make_response("Acme makes anvils. It has about 40 employees.")
        return _make_response("Reconciled: Acme makes anvils and is raising a seed extension.")

    def prompts(self) -> list[str]:
        return [prompt_text(c) for c in self.calls]


@pytest.fixture
def transport():
    """Patch litellm.acompletion with a ScriptedTransport."""
    scripted = ScriptedTransport()
    with patch("enricher.core.completion_client.litellm.acompletion", new=scripted):
        yield scripted


# =============================================================================
# Collaborators
# =============================================================================


class FakeRenderer:
    """Records render calls and returns a predictable locator."""

    def __init__(self):
        self.calls: list[tuple[str, dict[str, str]]] = []

    def render_report(self, template_id: str, field_map: dict[str, str]) -> str:
        self.calls.append((template_id, dict(field_map)))
        return f"reports/{field_map.get('name', 'unknown').lower()}-{template_id}.html"


class FakeDocumentSource:
    """Folders of DocumentInfo keyed by entity name."""

    def __init__(self, folders: dict[str, list[DocumentInfo]] | None = None):
        self.folders = folders or {}
        self.fetched: list[str] = []

    def location_for(self, entity_name: str) -> str:
        for name in self.folders:
            if name.lower() == entity_name.lower():
                return name
        raise NotFound(f"No document folder for {entity_name}")

    def list_documents(self, location_id: str) -> list[DocumentInfo]:
        return list(self.folders[location_id])

    def get_document_bytes(self, document_id: str) -> bytes:
        self.fetched.append(document_id)
        return b"%PDF-1.4 " + document_id.encode()


def _make_document(name: str, days_old: int, now: datetime, mime_type: str = "application/pdf") -> DocumentInfo:
    return DocumentInfo(
        id=f"docs/{name}",
        name=name,
        mime_type=mime_type,
        last_modified=now - timedelta(days=days_old),
    )


@pytest.fixture
def schema():
    return default_schema()


@pytest.fixture
def store(schema):
    """Record store with Acme and Globex registered and CRM data for both."""
    records = InMemoryRecordStore()
    for name, website, sector, location in (
        ("Acme", "https://www.acme.io", "Industrial", "DE"),
        ("Globex", "globex.com", "Energy", "US"),
    ):
        record = records.register(name, cohort="Spring 2025")
        write_fields(records, schema, record.entity_id, PartitionKind.CRM, {
            "name": name,
            "website": website,
            "sector": sector,
            "location": location,
        })
    return records


@pytest.fixture
def state():
    return InMemoryStateStore()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def documents(clock):
    now = clock.now()
    return FakeDocumentSource({
        "Acme": [
            _make_document("q1-update.pdf", 10, now),
            _make_document("board-deck.pdf", 40, now),
            _make_document("notes.txt", 1, now, mime_type="text/plain"),
        ],
    })


@pytest.fixture
def context(store, schema, clock, sleep, renderer, documents):
    cost_tracker = CostTracker()
    resources = StageResources(
        client=CompletionClient(cost_tracker=cost_tracker, sleep=sleep),
        extractor=SchemaExtractor(schema),
        store=store,
        logger=get_logger(),
        cost_tracker=cost_tracker,
        documents=documents,
        renderer=renderer,
        clock=clock,
    )
    return StageContext(resources=resources, config=StageConfig(), state=InvocationState())


@pytest.fixture
def executor(context):
    return StageExecutor(context)


@pytest.fixture
def scheduler(state, executor, clock, sleep):
    return Scheduler(state, executor, clock=clock, sleep=sleep)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_response():
    """Factory for litellm-shaped responses."""
    return _make_response


@pytest.fixture
def make_document():
    """Factory for DocumentInfo records aged relative to a given time."""
    return _make_document
