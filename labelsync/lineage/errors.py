"""Lineage resolution error hierarchy.

Every lineage error means "the storage identity cannot be derived from
lineage"; the resolver answers all of them with the viewed identity.
"""


class LineageError(Exception):
    """Base exception for lineage resolution failures."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class IncompatibleDatasetError(LineageError):
    """Dataset metadata is missing, malformed, or of an unsupported version."""

    def __init__(
        self,
        message: str,
        version: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.version = version


class LineageUnavailableError(LineageError):
    """The lineage document could not be fetched.

    The common case is a 404: original datasets carry no lineage.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code

    @property
    def is_missing(self) -> bool:
        """True when the host answered that the document does not exist."""
        return self.status_code == 404


class MalformedLineageError(LineageError):
    """A lineage entry parsed but its source repository is unusable."""

    def __init__(self, message: str, source_repo_id: str | None = None) -> None:
        super().__init__(message)
        self.source_repo_id = source_repo_id
