"""Pairing consistency checker.

Counts issue tags against their recovery tags over a set of frame records.
Issue tags that share a recovery tag form one recovery group and are
summed before comparison. Output order follows the pairing table, never
the order of the input frames.
"""

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from labelsync.annotations.enums import IssueTag
from labelsync.annotations.models import FrameRecord
from labelsync.pairing.models import DEFAULT_PAIRING_TABLE, PairingRule


class PairingMismatch(BaseModel):
    """A recovery group whose issue total differs from its recovery count."""

    model_config = ConfigDict(frozen=True)

    recovery_tag: IssueTag
    issue_counts: dict[IssueTag, int] = Field(
        ..., description="Per issue tag frame counts, only tags that occurred"
    )
    recovery_count: int = Field(..., ge=0)

    @property
    def issue_total(self) -> int:
        return sum(self.issue_counts.values())

    @property
    def message(self) -> str:
        issues = "/".join(tag.value for tag in self.issue_counts)
        return (
            f"{issues} ({self.issue_total}×) should match "
            f"{self.recovery_tag.value} ({self.recovery_count}×)"
        )

    def __str__(self) -> str:
        return self.message


def recovery_groups(
    table: Sequence[PairingRule] = DEFAULT_PAIRING_TABLE,
) -> dict[IssueTag, list[IssueTag]]:
    """Group issue tags by recovery tag, in first-appearance order."""
    groups: dict[IssueTag, list[IssueTag]] = {}
    for rule in table:
        issues = groups.setdefault(rule.recovery_tag, [])
        if rule.issue_tag not in issues:
            issues.append(rule.issue_tag)
    return groups


def find_pairing_mismatches(
    frames: Iterable[FrameRecord],
    table: Sequence[PairingRule] = DEFAULT_PAIRING_TABLE,
) -> list[PairingMismatch]:
    """Structured mismatches for frames; see check_pairing."""
    tag_sets = [frame.issue_tags for frame in frames]

    def frames_with(tag: IssueTag) -> int:
        return sum(1 for tags in tag_sets if tag in tags)

    mismatches: list[PairingMismatch] = []
    for recovery_tag, issue_tags in recovery_groups(table).items():
        issue_counts: dict[IssueTag, int] = {}
        for issue_tag in issue_tags:
            count = frames_with(issue_tag)
            if count > 0:
                issue_counts[issue_tag] = count

        total = sum(issue_counts.values())
        recovery_count = frames_with(recovery_tag)
        # Absence of both sides is not a mismatch
        if total > 0 and total != recovery_count:
            mismatches.append(
                PairingMismatch(
                    recovery_tag=recovery_tag,
                    issue_counts=issue_counts,
                    recovery_count=recovery_count,
                )
            )
    return mismatches


def check_pairing(
    frames: Iterable[FrameRecord],
    table: Sequence[PairingRule] = DEFAULT_PAIRING_TABLE,
) -> list[str]:
    """Human-readable pairing warnings for a set of frame records.

    Args:
        frames: Frame records to check (normally the committed set)
        table: Pairing rules; defaults to the built-in table

    Returns:
        One warning per mismatched recovery group, e.g.
        ``"left_arm_missed (2×) should match left_arm_recovery (1×)"``
    """
    return [mismatch.message for mismatch in find_pairing_mismatches(frames, table)]
