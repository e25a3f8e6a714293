"""Error taxonomy for the feed transformation pipeline.

Every error carries the HTTP status the orchestrator answers with, so a
failure in any stage maps to exactly one response.
"""

from enum import Enum


class RecastError(Exception):
    """Base class for pipeline failures that end a request."""

    status_code = 500
    stage = "process"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"failed to {self.stage} feed: {self.message}"


class InvalidRequestError(RecastError):
    """The caller supplied a missing or malformed ``url`` or ``delay``."""

    status_code = 400

    def __str__(self) -> str:
        return f"failed to parse query: {self.message}"


class FetchError(RecastError):
    """The origin feed could not be retrieved."""

    status_code = 502
    stage = "load"

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class ParseFailure(str, Enum):
    """Document-level reasons a feed cannot be parsed."""

    NOT_WELL_FORMED_XML = "not_well_formed_xml"
    UNRECOGNIZED_FORMAT = "unrecognized_format"


class ParseError(RecastError):
    """The whole origin document is unusable."""

    stage = "parse"

    def __init__(self, reason: ParseFailure, message: str):
        super().__init__(message)
        self.reason = reason


class SerializeError(RecastError):
    """The transformed feed could not be written back out."""

    stage = "serialize"
