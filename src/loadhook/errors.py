"""Error types raised by loadhook.

Storage failures are not wrapped: they surface as the OSError raised by
the file API so a broken cache aborts the build instead of degrading.
"""


class LoadhookError(Exception):
    """Base class for loadhook errors."""


class ConfigurationError(LoadhookError):
    """Invalid setup detected before any file is processed."""


class UnexpectedResultShape(LoadhookError):
    """The external transform returned a value of an unknown shape."""

    def __init__(self, result: object):
        self.result = result
        super().__init__(
            f"transform returned unexpected result of type {type(result).__name__}"
        )
