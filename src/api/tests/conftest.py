"""Shared test fixtures for Project Devi tests.

Provider credentials are blanked at module level (before any ``devi`` or
``main`` import) so ``main.config`` — built by ``load_config()`` at import
time — never picks up real keys from the shell or a ``.env`` file.
``load_dotenv(override=False)`` leaves these empty values alone.
"""

import os

for _var in ("TAVILY_API_KEY", "GEMINI_API_KEY", "FEEDBACK_WEBHOOK_URL"):
    os.environ[_var] = ""

import httpx  # noqa: E402
import pytest  # noqa: E402

from devi.config import Config  # noqa: E402
from devi.models import Source  # noqa: E402


@pytest.fixture
def config() -> Config:
    """A fully configured Config pointing at fake endpoints."""
    return Config(
        tavily_api_key="tvly-test",
        tavily_endpoint="https://search.test/search",
        gemini_api_key="gemini-test",
        generation_base_url="https://llm.test/v1/",
        feedback_webhook_url="https://hooks.test/devi",
    )


@pytest.fixture
def sources() -> list[Source]:
    return [
        Source(id=1, title="Gartland classification", url="https://radiopaedia.org/articles/gartland", snippet="Type II ..."),
        Source(id=2, title="Supracondylar fractures", url="https://www.ncbi.nlm.nih.gov/books/NBK1", snippet="Posterior hinge ..."),
        Source(id=3, title="Paediatric elbow", url="https://example.org/elbow", snippet="Neurovascular ..."),
    ]


@pytest.fixture
def mock_http():
    """Factory for an ``AsyncClient`` whose requests are answered by *handler*.

    Every request is also recorded on the returned list for assertions.
    """
    requests: list[httpx.Request] = []

    def _factory(handler) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
        def _recording(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(_recording)), requests

    return _factory
