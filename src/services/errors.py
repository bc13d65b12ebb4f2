"""Error taxonomy for the image edit proxy.

Each error carries the HTTP status it maps to, a short message for the
caller and optional diagnostic detail. Detail strings must never contain
the upstream credential.
"""

from typing import Optional


class ImageProxyError(Exception):
    """Base error for the image edit proxy."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"ok": False, "message": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(ImageProxyError):
    """Bad or missing input."""

    status_code = 400


class AuthError(ImageProxyError):
    """Missing or rejected upstream credential."""

    status_code = 401


class AllVariantsExhausted(ImageProxyError):
    """Every fallback candidate failed."""

    status_code = 422

    def __init__(
        self,
        message: str,
        last_error: Optional[ImageProxyError] = None,
        attempts: Optional[list[dict]] = None,
    ):
        detail = None
        if last_error is not None:
            detail = last_error.detail or last_error.message
        super().__init__(message, detail)
        self.last_error = last_error
        self.attempts = attempts or []


class UpstreamFailure(ImageProxyError):
    """The prediction failed, was canceled, or the API call itself failed."""

    status_code = 502


class UpstreamTimeout(ImageProxyError):
    """The polling ceiling was reached without a terminal status."""

    status_code = 504


class UnexpectedError(ImageProxyError):
    """Anything not covered above."""

    status_code = 500
