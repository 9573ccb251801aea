"""Shared fixtures: config, generated images and a recording describer stub."""

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from image_gateway.core.config import Config
from image_gateway.core.describer import VisionDescriber
from image_gateway.core.errors import CollaboratorFailureError
from image_gateway.core.models import DescriptionRequest
from image_gateway.main import create_app


class RecordingDescriber(VisionDescriber):
    """Describer stub that records every call and returns canned text."""

    def __init__(self, text: str = "A red square on a blue background.", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls: list[DescriptionRequest] = []

    async def describe(self, request: DescriptionRequest) -> str:
        self.calls.append(request)
        if self.fail:
            raise CollaboratorFailureError("Vision model call failed: connection refused")
        return self.text


def _encode(image: np.ndarray, extension: str) -> bytes:
    ok, encoded = cv2.imencode(extension, image)
    assert ok
    return encoded.tobytes()


def make_image(width: int = 64, height: int = 48, channels: int = 3, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    shape = (height, width) if channels == 1 else (height, width, channels)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


@pytest.fixture
def config(monkeypatch, tmp_path) -> Config:
    monkeypatch.setenv("LOG_TO_FILE", "false")
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("MAX_TRANSCODE_WORKERS", "2")
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "5")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return Config()


@pytest.fixture
def describer() -> RecordingDescriber:
    return RecordingDescriber()


@pytest.fixture
def client(config, describer):
    app = create_app(config, describer=describer)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def png_bytes() -> bytes:
    return _encode(make_image(), ".png")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode(make_image(seed=1), ".jpg")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return _encode(make_image(channels=4, seed=2), ".png")


@pytest.fixture
def gray_png_bytes() -> bytes:
    return _encode(make_image(channels=1, seed=3), ".png")


@pytest.fixture
def png16_bytes() -> bytes:
    image = (make_image(seed=4).astype(np.uint16) * 257)
    return _encode(image, ".png")


@pytest.fixture
def corrupt_bytes() -> bytes:
    return b"this is definitely not an image" * 10
