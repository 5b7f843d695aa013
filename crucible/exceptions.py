"""
Exception hierarchy for Crucible Monitor.

The classifier functions themselves never raise; these exceptions belong to
the boundaries around them (validation of incoming samples, configuration
loading and the network appliance client).
"""


class CrucibleError(Exception):
    """Base class for all Crucible Monitor errors."""


class InvalidMetricError(CrucibleError, ValueError):
    """
    Raised when a telemetry value is outside its meaningful domain.

    Attributes:
        field: Name of the offending field
        value: Offending value
    """

    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid metric '{field}'={value!r}: {reason}")


class ConfigurationError(CrucibleError, ValueError):
    """Raised when config.yaml is malformed or missing required values."""


class ExtrahopError(CrucibleError):
    """
    Raised when the network appliance API cannot be reached or answers
    with an error status.

    Attributes:
        status_code: HTTP status code, None for transport failures
    """

    def __init__(self, message: str, status_code=None):
        self.status_code = status_code
        super().__init__(message)
