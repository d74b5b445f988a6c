from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from backend.app.gemini_client import GeminiClient
from backend.app.main import app, get_client


def make_response(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeCompletions:
    def __init__(self, result=None, chunks=None, error=None):
        self.result = result
        self.chunks = chunks or []
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return iter([make_chunk(c) for c in self.chunks])
        return make_response(self.result)


def fake_gemini_client(completions):
    client = GeminiClient("test-key")
    client.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client


@pytest.fixture
def completions():
    return FakeCompletions(result='{"score": 88, "feedback": "好叻呀!"}',
                           chunks=['{"score": 8', '8, "feedback": "Great j', 'ob!"}'])


@pytest.fixture
def gemini(completions):
    return fake_gemini_client(completions)


@pytest.fixture
def api(gemini, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    app.dependency_overrides[get_client] = lambda: gemini
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def images():
    return {
        "targetImage": ("target.png", b"\x89PNG target", "image/png"),
        "attemptImage": ("attempt.jpg", b"\xff\xd8 attempt", "image/jpeg"),
    }
