"""Shared pytest fixtures for the GuardNomad backend."""

import httpx
import pytest

from config import EXA_BASE_URL


class FakeClock:
    """Manually advanced clock for TTL and cooldown tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def exa_result(title: str, text: str, url: str = "https://www.example.com/article",
               highlights=None, published: str = "2024-05-01T10:00:00Z") -> dict:
    return {
        "title": title,
        "text": text,
        "url": url,
        "highlights": highlights if highlights is not None else [],
        "publishedDate": published,
    }


class ExaStub:
    """Records search requests and answers them from a canned handler."""

    def __init__(self, results=None, status_code: int = 200, body=None):
        self.requests: list[httpx.Request] = []
        self.results = results if results is not None else []
        self.status_code = status_code
        self.body = body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, json={"results": self.results})

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url=EXA_BASE_URL)


@pytest.fixture
def clock():
    return FakeClock()
