import pytest
from unittest.mock import MagicMock, AsyncMock
import httpx
import openai
from google.api_core.exceptions import AlreadyExists

from src.news.models.article import RewrittenArticle
from src.news.repositories.article_repository import ArticleRepository
from src.news.services.batch_scheduler import BatchScheduler
from src.news.services.ingestion_orchestrator import IngestionOrchestrator


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection, key):
        self.collection = collection
        self.id = key

    def get(self):
        self.collection.reads += 1
        return FakeSnapshot(self.collection.documents.get(self.id))

    def create(self, data):
        if self.id in self.collection.documents:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self.collection.writes += 1
        self.collection.documents[self.id] = dict(data)

    def set(self, data, merge=False):
        self.collection.writes += 1
        if merge and self.id in self.collection.documents:
            self.collection.documents[self.id].update(data)
        else:
            self.collection.documents[self.id] = dict(data)


class FakeQuery:
    def __init__(self, collection, filters=None, limit=None):
        self.collection = collection
        self.filters = filters or []
        self._limit = limit

    def where(self, filter=None):
        return FakeQuery(self.collection, self.filters + [filter], self._limit)

    def limit(self, count):
        return FakeQuery(self.collection, self.filters, count)

    def stream(self):
        matches = [
            FakeSnapshot(document)
            for document in self.collection.documents.values()
            if all(document.get(f.field_path) == f.value for f in self.filters if f.op_string == "==")
        ]
        return iter(matches[:self._limit] if self._limit is not None else matches)


class FakeCollection:
    def __init__(self):
        self.documents = {}
        self.reads = 0
        self.writes = 0

    def document(self, key):
        return FakeDocumentRef(self, key)

    def where(self, filter=None):
        return FakeQuery(self).where(filter=filter)


class FakeFirestore:
    """In-memory stand-in for the Firestore client surface the repository uses"""

    def __init__(self):
        self.collections = {}

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def repository(fake_db):
    return ArticleRepository(fake_db, "articles")


@pytest.fixture
def articles(fake_db):
    return fake_db.collection("articles")


@pytest.fixture
def sleep_recorder():
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def mock_scraper():
    scraper = MagicMock()
    scraper.extract = AsyncMock(return_value="Extracted article body about the city council vote.")
    return scraper


@pytest.fixture
def mock_rewriter():
    rewriter = MagicMock()
    rewriter.rewrite = AsyncMock(
        return_value=RewrittenArticle(title="Council approves budget", description="The council approved the budget.")
    )

    async def _rewrite_batch(items):
        return [
            RewrittenArticle(title=f"Rewritten {i}", description=f"Description {i}")
            for i, _ in enumerate(items)
        ]

    rewriter.rewrite_batch = AsyncMock(side_effect=_rewrite_batch)
    return rewriter


@pytest.fixture
def orchestrator(repository, mock_scraper, mock_rewriter, sleep_recorder):
    scheduler = BatchScheduler(batch_size=2, cooldown_seconds=3.0, sleep=sleep_recorder)
    return IngestionOrchestrator(repository, mock_scraper, mock_rewriter, scheduler)


@pytest.fixture
def mock_openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


def make_completion(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def make_rate_limit_error():
    request = httpx.Request("POST", "https://rewrite.test/v1/chat/completions")
    return openai.RateLimitError(
        "Rate limit reached",
        response=httpx.Response(429, request=request),
        body=None
    )


@pytest.fixture
def completion_factory():
    return make_completion


@pytest.fixture
def rate_limit_error_factory():
    return make_rate_limit_error
