from typing import Optional


class GatewayError(Exception):
    """Base class for failures surfaced to API callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"status": "error", "message": self.message, "error": type(self).__name__}


class SessionError(GatewayError):
    """Session bootstrap against the catalog API failed."""
    status_code = 503

    def __init__(self, cause: Exception):
        super().__init__(f"Session bootstrap failed: {cause}")
        self.cause = cause


class UpstreamError(GatewayError):
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, timeout: bool = False):
        super().__init__(message)
        self.status = status
        self.timeout = timeout
        if timeout:
            self.status_code = 504

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["upstreamStatus"] = self.status
        return data


class InvalidTarget(GatewayError):
    """Proxy asked to fetch from a host outside the allow-list."""
    status_code = 400


class StreamFailure(GatewayError):
    """Media connection dropped after the response started."""
    status_code = 502
