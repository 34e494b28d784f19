import io
from types import SimpleNamespace

import pytest
from PIL import Image

import app as app_module
from settings import Settings


def make_png(size=(8, 8), color=(200, 40, 90)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeGenaiClient:
    def __init__(self, response=None, error=None):
        self.models = FakeModels(response, error)


def text_response(text):
    return SimpleNamespace(text=text)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    s = Settings(gemini_api_key="test-key", generated_dir=str(tmp_path / "generated"))
    monkeypatch.setattr(app_module, "settings", s)
    monkeypatch.setattr(app_module, "_genai_client", None)
    monkeypatch.setattr(app_module, "_openai_client", None)
    return s


@pytest.fixture
def client(settings):
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


@pytest.fixture
def fake_genai(monkeypatch):
    """Install a fake google-genai client answering with the given text."""
    def install(text=None, error=None, response=None):
        fake = FakeGenaiClient(response if response is not None else text_response(text), error)
        monkeypatch.setattr(app_module, "get_genai_client", lambda: fake)
        return fake
    return install
