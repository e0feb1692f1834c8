"""Project error hierarchy.

Each error carries the HTTP status and machine-readable code the router
reports for it, so failures raised deep in the vision pipeline surface to
the caller without being re-classified on the way up.
"""


class VisionGateError(Exception):
    """Base error."""

    status_code = 500
    code = "visiongate_error"


class InvalidRequestError(VisionGateError):
    """Raised when client input is malformed or ambiguous."""

    status_code = 400
    code = "invalid_request"


class InvalidImageDataError(VisionGateError):
    """Raised when image bytes cannot be obtained or decoded."""

    status_code = 400
    code = "invalid_image_data"


class OcrFailedError(VisionGateError):
    """Raised when the OCR engine reports an internal recognition error."""

    status_code = 500
    code = "ocr_failed"
