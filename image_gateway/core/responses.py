from typing import Any
from urllib.parse import quote

from fastapi.responses import JSONResponse, Response

from image_gateway.core.errors import ImageGatewayError
from image_gateway.core.models import TranscodeResult

# Characters encodeURIComponent leaves untouched besides alphanumerics.
URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=URI_COMPONENT_SAFE)


def content_disposition(file_name: str) -> str:
    """Build an attachment header, adding filename* for non latin-1 names."""
    escaped = file_name.replace("\\", "\\\\").replace('"', '\\"')
    try:
        escaped.encode("latin-1")
    except UnicodeEncodeError:
        fallback = escaped.encode("ascii", "replace").decode("ascii")
        return (
            f'attachment; filename="{fallback}"; '
            f"filename*=UTF-8''{quote(file_name, safe='')}"
        )
    return f'attachment; filename="{escaped}"'


def webp_file_response(result: TranscodeResult) -> Response:
    return Response(
        content=result.encoded_bytes,
        media_type=result.media_type,
        headers={
            "Content-Disposition": content_disposition(result.output_file_name),
            "Content-Length": str(len(result.encoded_bytes)),
        },
    )


def json_response(content: dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content)


def upload_response(message: str, file_name: str) -> JSONResponse:
    return json_response({
        "message": message,
        "fileName": file_name,
        "encodedFileName": encode_uri_component(file_name),
    })


def base64_response(message: str, file_name: str, data_uri: str) -> JSONResponse:
    return json_response({
        "message": message,
        "fileName": file_name,
        "base64": data_uri,
    })


def description_response(text: str) -> JSONResponse:
    return json_response({"status": "success", "data": text})


def canned_description_response(message: str, file_name: str, description: str) -> JSONResponse:
    return json_response({
        "message": message,
        "fileName": file_name,
        "description": description,
    })


def error_response(error: Exception, message: str | None = None) -> JSONResponse:
    """JSON error envelope; ImageGatewayError carries its own status."""
    if isinstance(error, ImageGatewayError):
        status_code = error.status_code
        message = message or error.message
    else:
        status_code = 500
    return json_response(
        {
            "status": "error",
            "message": message or "An error occurred while processing your request.",
            "type": type(error).__name__,
        },
        status_code=status_code,
    )
