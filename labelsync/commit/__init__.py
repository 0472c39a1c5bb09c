"""Batch commit of edit cache contents to an annotation store."""

from labelsync.commit.errors import CommitError
from labelsync.commit.models import CommitReceipt, CommitStep, CommitStepTiming
from labelsync.commit.protocol import BatchCommitProtocol

__all__ = [
    "BatchCommitProtocol",
    "CommitError",
    "CommitReceipt",
    "CommitStep",
    "CommitStepTiming",
]
