from types import SimpleNamespace

import pytest

import lotto_lens.gemini_service as gemini_module
from lotto_lens.errors import VisionServiceError
from lotto_lens.gemini_service import TICKET_PROMPT, GeminiService


class FakeModel:
    def __init__(self, name, text="{}", error=None):
        self.name = name
        self.text = text
        self.error = error
        self.requests = []

    def generate_content(self, contents):
        self.requests.append(contents)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture()
def fake_genai(monkeypatch):
    configured = {}
    models = []

    def _model(name):
        model = FakeModel(name)
        models.append(model)
        return model

    monkeypatch.setattr(gemini_module.genai, "configure", lambda api_key: configured.update(api_key=api_key))
    monkeypatch.setattr(gemini_module.genai, "GenerativeModel", _model)
    return SimpleNamespace(configured=configured, models=models)


def test_sends_image_inline_with_ticket_prompt(fake_genai):
    service = GeminiService(api_key="key-123", model_name="gemini-test")
    fake_genai.models[0].text = '```json\n{"date": "01.02.2024"}\n```'

    text = service.process_ticket_image(b"\x89PNG", "image/png")

    assert text == '```json\n{"date": "01.02.2024"}\n```'
    assert fake_genai.configured == {"api_key": "key-123"}
    assert fake_genai.models[0].name == "gemini-test"
    assert fake_genai.models[0].requests == [[{"mime_type": "image/png", "data": b"\x89PNG"}, TICKET_PROMPT]]


def test_api_error_becomes_vision_service_error(fake_genai):
    service = GeminiService(api_key="key-123")
    fake_genai.models[0].error = RuntimeError("quota exceeded")

    with pytest.raises(VisionServiceError) as exc_info:
        service.process_ticket_image(b"img", "image/jpeg")
    assert exc_info.value.status_code == 500


def test_empty_response_is_an_error(fake_genai):
    service = GeminiService(api_key="key-123")
    fake_genai.models[0].text = ""

    with pytest.raises(VisionServiceError, match="No response"):
        service.process_ticket_image(b"img")


def test_missing_api_key_is_rejected(fake_genai, monkeypatch):
    monkeypatch.setattr(gemini_module, "get_settings", lambda: SimpleNamespace(gemini_api_key=None, gemini_model="m"))
    with pytest.raises(ValueError):
        GeminiService()
    assert fake_genai.models == []
