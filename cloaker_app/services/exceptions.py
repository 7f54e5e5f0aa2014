"""Domain errors raised by the services and mapped to HTTP responses in main.py."""


class CloakerError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(CloakerError):
    """Campaign, URL, master record or blacklist entry does not exist."""
    status_code = 404


class ExhaustedError(CloakerError):
    """Nothing left to serve: no active URL, or the URL used up its quota."""
    status_code = 410


class ValidationError(CloakerError):
    """Request is well-formed but not acceptable (taken custom path, wrong campaign, ...)."""
    status_code = 400


class RestrictedOperationError(CloakerError):
    """The field can't be written through this endpoint."""
    status_code = 403
