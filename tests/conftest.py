from __future__ import annotations

import io
import threading
from collections.abc import Iterator
from urllib import error, request

import pytest
from fastapi.testclient import TestClient

from workflow_api.app import fetcher as fetcher_module
from workflow_api.app.settings import Settings
from workflow_api.app.storage import InMemoryWorkflowStorage
from workflow_api.main import create_app


class RecordingGenerator:
    """Test double for GenerationClient that remembers every prompt it receives."""

    def __init__(self, reply: str = "Generated result.") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def invoke(self, model_name: str, prompt: str) -> str:
        with self._lock:
            self.calls.append((model_name, prompt))
        return self.reply


class FakeHTTPResponse:
    def __init__(self, body: bytes, *, status: int = 200, charset: str | None = "utf-8") -> None:
        self._raw_body = body
        self.status = status
        self.headers = _FakeHeaders(charset)

    def read(self) -> bytes:
        return self._raw_body

    def __enter__(self) -> FakeHTTPResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        _ = (exc_type, exc, tb)
        return False


class _FakeHeaders:
    def __init__(self, charset: str | None) -> None:
        self._charset = charset

    def get_content_charset(self) -> str | None:
        return self._charset


@pytest.fixture
def web_pages(monkeypatch: pytest.MonkeyPatch) -> dict[str, str | int]:
    """URL -> HTML body, or an int HTTP status to answer with an error.

    Unknown URLs behave like unreachable hosts.
    """
    pages: dict[str, str | int] = {}

    def fake_urlopen(req: request.Request, timeout: float) -> FakeHTTPResponse:
        _ = timeout
        url = req.full_url
        if url not in pages:
            raise error.URLError("Name or service not known")
        page = pages[url]
        if isinstance(page, int):
            raise error.HTTPError(url, page, "error", None, io.BytesIO(b""))
        return FakeHTTPResponse(page.encode("utf-8"))

    monkeypatch.setattr(fetcher_module.request, "urlopen", fake_urlopen)
    return pages


@pytest.fixture
def storage() -> InMemoryWorkflowStorage:
    return InMemoryWorkflowStorage()


@pytest.fixture
def generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture
def client(
    storage: InMemoryWorkflowStorage,
    generator: RecordingGenerator,
    web_pages: dict[str, str | int],
) -> Iterator[TestClient]:
    _ = web_pages
    app = create_app(
        storage=storage,
        generator=generator,
        settings_override=Settings(openai_api_key="", default_model="gpt-4o-mini"),
    )
    with TestClient(app) as test_client:
        yield test_client
