import os
import sys

import numpy as np
import pytest

# Ensure repository root is on sys.path so `import lotto_lens.*` works during tests
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from lotto_lens.config import Settings  # noqa: E402
from lotto_lens.errors import AuthError, CaptureCapabilityError, LookupNotFoundError  # noqa: E402
from lotto_lens.models import DrawResult  # noqa: E402

ALLOWED_EMAIL = "owner@example.com"
VALID_TOKEN = "valid-token"
OTHER_USER_TOKEN = "other-user-token"

SAMPLE_MODEL_RESPONSE = (
    'Here you go:\n```json\n{"date":"01.02.2024","sanceNumber":"089229",'
    '"winningNumbers":["05 21 32 36 38 46 NT","01 02 03 04 05 06"]}\n```'
)


class FakeVerifier:
    def verify(self, token):
        if token == VALID_TOKEN:
            return {"email": ALLOWED_EMAIL}
        if token == OTHER_USER_TOKEN:
            return {"email": "someone@example.com"}
        raise AuthError("Invalid token: bad signature")


class FakeGemini:
    def __init__(self, response=SAMPLE_MODEL_RESPONSE):
        self.response = response
        self.calls = []

    def process_ticket_image(self, image_data, mime_type="image/png"):
        self.calls.append((image_data, mime_type))
        return self.response


class FakeResultsClient:
    def __init__(self, results=None):
        self.results = results or {}
        self.requested = []

    def fetch_by_date(self, draw_date):
        from lotto_lens.date_utils import derive_draw_id

        draw_id = derive_draw_id(draw_date)
        self.requested.append(draw_id)
        if draw_id not in self.results:
            raise LookupNotFoundError(draw_id)
        return self.results[draw_id]


class FakeCamera:
    def __init__(self, frames=None, fail=False):
        self.frames = list(frames or [])
        self.fail = fail
        self.opened = False
        self.released = False

    def open(self):
        if self.fail:
            raise CaptureCapabilityError("Unable to access camera.")
        self.opened = True

    def read(self):
        return self.frames.pop(0) if self.frames else None

    def release(self):
        self.released = True


def sample_draw_result() -> DrawResult:
    return DrawResult(
        draw_date="2024-02-01T20:00:00+01:00",
        main_game1_numbers=[5, 21, 32, 40, 41, 49],
        main_game1_extra=46,
        main_game2_numbers=[1, 2, 3, 10, 11, 12],
        main_game2_extra=7,
        addon_numbers=[0, 8, 9, 2, 2, 9],
    )


def striped_frame() -> np.ndarray:
    """640x480 RGB frame whose sampled pixels alternate black and white."""
    columns = (np.arange(640) // 4) % 2
    row = np.where(columns == 0, 0, 255).astype(np.uint8)
    frame = np.broadcast_to(row[None, :, None], (480, 640, 3))
    return np.ascontiguousarray(frame)


def blank_frame(value: int = 255) -> np.ndarray:
    return np.full((480, 640, 3), value, dtype=np.uint8)


@pytest.fixture()
def test_settings():
    return Settings(allowed_user_email=ALLOWED_EMAIL, max_upload_bytes=1024 * 1024)


@pytest.fixture()
def fake_gemini():
    return FakeGemini()


@pytest.fixture()
def fake_results():
    return FakeResultsClient({"2024054": sample_draw_result()})


@pytest.fixture()
def fastapi_app(test_settings, fake_gemini, fake_results):
    import lotto_lens.api as api
    from lotto_lens.auth_middleware import get_token_verifier
    from lotto_lens.config import get_settings
    from lotto_lens.draw_results import get_results_client
    from lotto_lens.gemini_service import get_gemini_service

    overrides = {
        get_settings: lambda: test_settings,
        get_token_verifier: lambda: FakeVerifier(),
        get_gemini_service: lambda: fake_gemini,
        get_results_client: lambda: fake_results,
    }
    api.app.dependency_overrides.update(overrides)
    yield api.app
    api.app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {VALID_TOKEN}"}
