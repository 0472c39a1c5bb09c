"""Batch commit errors."""

from labelsync.commit.models import CommitStep


class CommitError(Exception):
    """A batch commit aborted at one step.

    Steps after ``step`` did not run and the edit cache was not reset, so
    the same commit can be retried as a whole.
    """

    def __init__(self, step: CommitStep, cause: Exception | None = None) -> None:
        """Initialize error.

        Args:
            step: Step that failed
            cause: Underlying exception, usually a StoreError
        """
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Commit failed at {step.value}{detail}")
        self.step = step
        self.cause = cause

    @property
    def retryable(self) -> bool:
        """Whether the failed step may succeed if the commit is repeated."""
        return bool(getattr(self.cause, "retryable", False))
