"""Exception types raised by the enhancement engine."""


class PhotocullError(Exception):
    """Base class for engine errors."""


class DecodeError(PhotocullError):
    """The source file could not be read or is not a supported image."""

    def __init__(self, path, reason: str = ""):
        self.path = path
        self.reason = reason
        message = f"Cannot decode image {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidParameters(PhotocullError, ValueError):
    """Transform parameters were rejected before any pixel work started."""


class CancelledOperation(PhotocullError):
    """A transform observed its cancellation flag and abandoned its work."""


def raise_if_cancelled(cancel) -> None:
    """Raises CancelledOperation if the given threading.Event (or None) is set."""
    if cancel is not None and cancel.is_set():
        raise CancelledOperation()
