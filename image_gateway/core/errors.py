"""Error kinds raised by the image pipeline.

Every error carries the HTTP status the routes answer with, so the request
boundary can turn any of them into a JSON error envelope without a lookup
table.
"""


class ImageGatewayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingPayloadError(ImageGatewayError):
    """No usable file in the expected form field."""

    status_code = 400


class PayloadTooLargeError(ImageGatewayError):
    status_code = 400


class InvalidQualityError(ImageGatewayError, ValueError):
    status_code = 400


class InvalidBase64Error(ImageGatewayError, ValueError):
    status_code = 400


class UnsupportedImageError(ImageGatewayError):
    """The bytes could not be decoded as an image."""

    status_code = 500


class EncodeFailureError(ImageGatewayError):
    status_code = 500


class TranscodeCancelledError(ImageGatewayError):
    # nginx's "client closed request"
    status_code = 499


class ClientDisconnectedError(ImageGatewayError):
    status_code = 499


class CollaboratorFailureError(ImageGatewayError):
    """The vision description service failed or timed out."""

    status_code = 500
