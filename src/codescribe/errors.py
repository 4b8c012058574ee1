"""Error taxonomy shared by all pipeline stages."""

from __future__ import annotations


class CodescribeError(Exception):
    """Base class for all codescribe errors."""


class ConfigError(CodescribeError):
    """Raised when the project config file is malformed."""


class ScanError(CodescribeError):
    """Raised when the scan root does not exist or is not a directory."""


class EmptyUnitError(CodescribeError):
    """Raised when no eligible files remain to build a unit from."""


class UpstreamError(CodescribeError):
    """Raised when the generative-model service call fails."""


class ArtifactParseError(CodescribeError):
    """Raised when a model response is not a valid documentation artifact.

    The offending payload is kept on ``raw_payload`` so callers can log it.
    """

    def __init__(self, message: str, raw_payload: str) -> None:
        super().__init__(message)
        self.raw_payload = raw_payload


class StoreError(CodescribeError):
    """Raised when a document-store request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SyncError(CodescribeError):
    """Raised when syncing an artifact into the document store fails.

    ``deleted_blocks`` counts the blocks already removed before the failure;
    a non-zero value means the record was left partially cleared.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        page_id: str | None = None,
        deleted_blocks: int = 0,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.page_id = page_id
        self.deleted_blocks = deleted_blocks
