from dataclasses import dataclass
from enum import Enum
from typing import Optional

from image_gateway.core.errors import InvalidQualityError, MissingPayloadError

DEFAULT_FILE_NAME = "unknown"
DEFAULT_MEDIA_TYPE = "application/octet-stream"
WEBP_MEDIA_TYPE = "image/webp"
MIN_QUALITY = 1
MAX_QUALITY = 100


class PromptVariant(str, Enum):
    DEFAULT = "default"
    ALT = "alt"

    @classmethod
    def from_form(cls, value: Optional[str]) -> "PromptVariant":
        """Map the optional ``type`` form value onto a variant."""
        if isinstance(value, str) and value.strip().lower() == cls.ALT.value:
            return cls.ALT
        return cls.DEFAULT


@dataclass
class UploadedImage:
    raw_bytes: bytes
    declared_media_type: Optional[str] = None
    original_file_name: Optional[str] = None

    def __post_init__(self):
        if not self.raw_bytes:
            raise MissingPayloadError("Empty file received.")

    @property
    def file_name(self) -> str:
        return self.original_file_name or DEFAULT_FILE_NAME

    @property
    def media_type(self) -> str:
        return self.declared_media_type or DEFAULT_MEDIA_TYPE

    @property
    def size(self) -> int:
        return len(self.raw_bytes)


@dataclass
class TranscodeRequest:
    source: UploadedImage
    quality: int

    def __post_init__(self):
        validate_quality(self.quality)


@dataclass
class TranscodeResult:
    encoded_bytes: bytes
    output_file_name: str
    media_type: str = WEBP_MEDIA_TYPE


@dataclass
class DescriptionRequest:
    image_data_uri: str
    prompt_variant: PromptVariant = PromptVariant.DEFAULT


def validate_quality(quality) -> int:
    """Reject anything the WebP encoder would not treat as a lossy quality."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"Quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError(
            f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality
