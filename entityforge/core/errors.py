"""Exception types shared across EntityForge.

Fatal vs. non-fatal handling is decided per stage by the pipeline, not by
the exception type itself: an UpstreamError aborts drafting and imaging but
only degrades context synthesis and attribute reconciliation.
"""

from typing import Any


class EntityForgeError(Exception):
    """Base class for all EntityForge errors."""


class ConfigurationError(EntityForgeError, ValueError):
    """Missing credential, unknown provider, or unsupported capability.

    Always raised before any network call is made.
    """


class UpstreamError(EntityForgeError):
    """The generative-model service failed or returned an unusable payload."""


class ParseError(UpstreamError):
    """The response could not be parsed into the expected shape."""


class SchemaGapWarning(UserWarning):
    """A new attribute was generated without accompanying metadata."""


class GenerationError(EntityForgeError):
    """A fatal stage failure that aborted entity creation.

    Args:
        stage: Name of the stage that failed (e.g. "draft", "image").
        cause: The underlying exception.
        debug_trace: Debug records of every stage run so far, including
            the failing one.
    """

    def __init__(
        self,
        stage: str,
        cause: BaseException | None = None,
        debug_trace: dict[str, Any] | None = None,
    ) -> None:
        self.stage = stage
        self.cause = cause
        self.debug_trace = debug_trace or {}
        message = f"{stage} stage failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
