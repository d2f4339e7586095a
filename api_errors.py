# Exceptions raised while building a comparison.


class VectorError(Exception):
    """Base class for errors that abort a comparison request."""


class InvalidInputError(VectorError):
    """A coordinate string could not be parsed as a finite decimal number."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid coordinate for {field}: {value!r}")


class UpstreamError(VectorError):
    """A provider call failed (transport error, error response or bad payload)."""

    def __init__(self, provider: str, cause):
        self.provider = provider
        self.cause = cause
        super().__init__(f"[{provider}] {cause}")
