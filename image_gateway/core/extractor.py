import logging
from typing import Optional

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

from image_gateway.core.errors import MissingPayloadError, PayloadTooLargeError
from image_gateway.core.models import UploadedImage

IMAGE_FIELD = "image"
MISSING_IMAGE_MESSAGE = "No image found in the request"


async def read_form(request: Request) -> FormData:
    """Parse the request body once; starlette caches the parsed form."""
    try:
        return await request.form()
    except Exception as e:
        logging.warning(f"Could not parse form body for {request.url.path}: {str(e)}")
        raise MissingPayloadError(MISSING_IMAGE_MESSAGE) from e


async def extract_image(
    form: FormData,
    field_name: str = IMAGE_FIELD,
    max_bytes: Optional[int] = None,
) -> UploadedImage:
    """Pull the uploaded file stored under ``field_name`` out of the form."""
    value = form.get(field_name)
    if value is None or not isinstance(value, UploadFile):
        logging.warning(f"Form field '{field_name}' missing or not a file")
        raise MissingPayloadError(MISSING_IMAGE_MESSAGE)

    content = await value.read()
    logging.info(f"Received file: {value.filename} ({len(content)} bytes, {value.content_type})")

    if max_bytes is not None and len(content) > max_bytes:
        logging.warning(f"File too large: {len(content)} bytes")
        raise PayloadTooLargeError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )

    return UploadedImage(
        raw_bytes=content,
        declared_media_type=value.content_type or None,
        original_file_name=value.filename or None,
    )


def form_text(form: FormData, field_name: str) -> Optional[str]:
    value = form.get(field_name)
    return value if isinstance(value, str) else None
