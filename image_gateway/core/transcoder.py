import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import cv2
import numpy as np

from image_gateway.core.config import Config
from image_gateway.core.errors import (
    EncodeFailureError,
    TranscodeCancelledError,
    UnsupportedImageError,
)
from image_gateway.core.models import (
    DEFAULT_FILE_NAME,
    TranscodeRequest,
    TranscodeResult,
    validate_quality,
)
from image_gateway.utils.memory import log_memory_usage

WEBP_EXTENSION = ".webp"


def derive_output_file_name(file_name: Optional[str], extension: str = WEBP_EXTENSION) -> str:
    """Replace the trailing extension of ``file_name`` with ``extension``.

    "photo.jpg" -> "photo.webp", "photo" -> "photo.webp",
    "archive.tar.gz" -> "archive.tar.webp". A missing name, or one that is
    nothing but an extension (".png"), falls back to the default base name.
    """
    if not file_name:
        return DEFAULT_FILE_NAME + extension
    base, dot, _ = file_name.rpartition(".")
    if not dot:
        base = file_name
    return (base or DEFAULT_FILE_NAME) + extension


def _check_cancelled(cancel_event: Optional[threading.Event], stage: str):
    if cancel_event is not None and cancel_event.is_set():
        logging.info(f"Transcode cancelled before {stage}")
        raise TranscodeCancelledError(f"Transcoding cancelled before {stage}")


def _to_8bit(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return cv2.convertScaleAbs(image, alpha=1.0 / 257.0)
    if np.issubdtype(image.dtype, np.floating):
        return (np.clip(image, 0.0, 1.0) * 255.0).round().astype(np.uint8)
    return cv2.convertScaleAbs(image)


def decode_image(data: bytes) -> np.ndarray:
    """Decode any container OpenCV can read into an 8-bit BGR or BGRA array."""
    if not data:
        raise UnsupportedImageError("Empty image data")

    buffer = np.frombuffer(data, np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise UnsupportedImageError(f"Failed to decode image: {str(e)}") from e
    if image is None or image.size == 0:
        raise UnsupportedImageError("Failed to decode image: unsupported or corrupt data")

    image = _to_8bit(image)
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] not in (3, 4):
        raise UnsupportedImageError(f"Unsupported channel count: {image.shape[2]}")
    return image


def encode_webp(image: np.ndarray, quality: int) -> bytes:
    validate_quality(quality)
    try:
        ok, encoded = cv2.imencode(WEBP_EXTENSION, image, [cv2.IMWRITE_WEBP_QUALITY, quality])
    except cv2.error as e:
        raise EncodeFailureError(f"Failed to encode WebP: {str(e)}") from e
    if not ok:
        raise EncodeFailureError("Failed to encode WebP")
    return encoded.tobytes()


def transcode(
    source_bytes: bytes,
    quality: int,
    cancel_event: Optional[threading.Event] = None,
) -> bytes:
    """Decode ``source_bytes`` and re-encode them as WebP at ``quality`` (1-100)."""
    validate_quality(quality)
    _check_cancelled(cancel_event, "decode")
    image = decode_image(source_bytes)
    _check_cancelled(cancel_event, "encode")
    return encode_webp(image, quality)


class WebPTranscoder:
    """Runs WebP transcodes on a thread pool so the event loop stays free."""

    def __init__(self, config: Config):
        self.config = config
        self.thread_pool = ThreadPoolExecutor(
            max_workers=config.max_transcode_workers,
            thread_name_prefix="webp-transcode",
        )
        logging.info(f"Initialized WebPTranscoder with {config.max_transcode_workers} workers")

    async def convert(
        self,
        request: TranscodeRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscodeResult:
        source = request.source
        start_time = time.time()
        logging.info(
            f"Transcoding {source.file_name} ({source.size} bytes) to WebP at quality {request.quality}"
        )

        loop = asyncio.get_running_loop()
        encoded = await loop.run_in_executor(
            self.thread_pool,
            lambda: transcode(source.raw_bytes, request.quality, cancel_event),
        )

        elapsed_time = time.time() - start_time
        logging.info(
            f"Transcoded {source.file_name}: {source.size} -> {len(encoded)} bytes in {elapsed_time:.2f}s"
        )
        log_memory_usage()

        return TranscodeResult(
            encoded_bytes=encoded,
            output_file_name=derive_output_file_name(source.original_file_name),
        )

    def shutdown(self):
        logging.info("Shutting down WebPTranscoder thread pool")
        self.thread_pool.shutdown(wait=False, cancel_futures=True)
