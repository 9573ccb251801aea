import logging
import threading
import traceback

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from image_gateway.core import codec
from image_gateway.core.config import Config
from image_gateway.core.describer import VisionDescriber, canned_description
from image_gateway.core.errors import ImageGatewayError
from image_gateway.core.extractor import IMAGE_FIELD, extract_image, form_text, read_form
from image_gateway.core.models import (
    DescriptionRequest,
    PromptVariant,
    TranscodeRequest,
    TranscodeResult,
    UploadedImage,
)
from image_gateway.core.responses import (
    base64_response,
    canned_description_response,
    description_response,
    error_response,
    upload_response,
    webp_file_response,
)
from image_gateway.core.transcoder import WebPTranscoder
from image_gateway.utils.cancellation import run_until_disconnected

router = APIRouter()

UPLOAD_FAILED = "An error occurred while processing the upload"
CONVERT_FAILED = "An error occurred while converting the image"
ANALYZE_FAILED = "An error occurred while analyzing the image"

# The vision model is sent a JPEG-style data URI when the upload has no image type.
DESCRIBE_FALLBACK_MEDIA_TYPE = "image/jpeg"


def _failure(request: Request, error: Exception, failure_message: str) -> JSONResponse:
    """Log an error raised inside a route and turn it into a JSON response."""
    if isinstance(error, ImageGatewayError) and error.status_code < 500:
        logging.warning(f"{request.url.path} rejected: {error.message}")
        return error_response(error)

    logging.error(f"Error handling {request.url.path}: {str(error)}")
    logging.error("Full traceback:")
    logging.error(traceback.format_exc())
    return error_response(error, failure_message)


async def _read_image(request: Request, field_name: str = IMAGE_FIELD) -> UploadedImage:
    config: Config = request.app.state.config
    form = await read_form(request)
    return await extract_image(form, field_name, max_bytes=config.max_file_size_bytes)


async def _convert(request: Request, image: UploadedImage, quality: int) -> TranscodeResult:
    config: Config = request.app.state.config
    transcoder: WebPTranscoder = request.app.state.transcoder
    transcode_request = TranscodeRequest(source=image, quality=quality)

    if not config.cancel_on_disconnect:
        return await transcoder.convert(transcode_request)

    cancel_event = threading.Event()
    return await run_until_disconnected(
        request,
        transcoder.convert(transcode_request, cancel_event),
        cancel_event,
    )


@router.post("/upload")
async def upload(request: Request) -> JSONResponse:
    """Acknowledge an upload and echo its file name."""
    try:
        image = await _read_image(request)
        return upload_response("Image received", image.file_name)
    except Exception as e:
        return _failure(request, e, UPLOAD_FAILED)


@router.post("/upload-base64")
async def upload_base64(request: Request) -> JSONResponse:
    """Return the upload as a data URI using its declared media type."""
    try:
        image = await _read_image(request)
        data_uri = codec.to_data_uri(image.raw_bytes, image.media_type)
        return base64_response("Image received", image.file_name, data_uri)
    except Exception as e:
        return _failure(request, e, UPLOAD_FAILED)


@router.post("/convert-to-webp")
async def convert_to_webp(request: Request) -> JSONResponse:
    """Transcode the upload to WebP and return it as a data URI."""
    try:
        image = await _read_image(request)
        result = await _convert(request, image, request.app.state.config.json_webp_quality)
        data_uri = codec.to_data_uri(result.encoded_bytes, result.media_type)
        return base64_response("Image converted to WebP", result.output_file_name, data_uri)
    except Exception as e:
        return _failure(request, e, CONVERT_FAILED)


@router.post("/convert-to-webp-file")
async def convert_to_webp_file(request: Request) -> Response:
    """Transcode the upload to WebP and return it as a downloadable file."""
    try:
        image = await _read_image(request)
        result = await _convert(request, image, request.app.state.config.file_webp_quality)
        return webp_file_response(result)
    except Exception as e:
        return _failure(request, e, CONVERT_FAILED)


@router.post("/describe")
async def describe(request: Request) -> JSONResponse:
    """Ask the vision model to describe the upload.

    ``type=alt`` asks for a one-sentence alt text instead of a free description.
    """
    try:
        form = await read_form(request)
        config: Config = request.app.state.config
        image = await extract_image(form, IMAGE_FIELD, max_bytes=config.max_file_size_bytes)
        variant = PromptVariant.from_form(form_text(form, "type"))

        describer: VisionDescriber = request.app.state.describer
        media_type = image.media_type
        if not media_type.startswith("image/"):
            media_type = DESCRIBE_FALLBACK_MEDIA_TYPE
        data_uri = codec.to_data_uri(image.raw_bytes, media_type)
        text = await describer.describe(
            DescriptionRequest(image_data_uri=data_uri, prompt_variant=variant)
        )
        return description_response(text)
    except Exception as e:
        return _failure(request, e, UPLOAD_FAILED)


@router.post("/describe-deprecated")
async def describe_deprecated(request: Request) -> JSONResponse:
    """Canned description chosen by ``type``; the image content is not inspected."""
    try:
        form = await read_form(request)
        config: Config = request.app.state.config
        image = await extract_image(form, "file", max_bytes=config.max_file_size_bytes)
        description = canned_description(form_text(form, "type"))
        return canned_description_response("Image analyzed", image.file_name, description)
    except Exception as e:
        return _failure(request, e, ANALYZE_FAILED)
