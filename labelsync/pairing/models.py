"""Pairing table between issue tags and their recovery tags."""

from pydantic import BaseModel, ConfigDict, Field

from labelsync.annotations.enums import IssueTag


class PairingRule(BaseModel):
    """An issue tag that must be balanced by a recovery tag.

    Several issue tags may share one recovery tag; together they form a
    recovery group and are counted against that recovery tag as a whole.
    """

    model_config = ConfigDict(frozen=True)

    issue_tag: IssueTag = Field(..., description="Tag marking the problem")
    recovery_tag: IssueTag = Field(..., description="Tag marking the recovery")
    description: str = Field(default="", description="Human-readable scope")


DEFAULT_PAIRING_TABLE: tuple[PairingRule, ...] = (
    PairingRule(
        issue_tag=IssueTag.LEFT_ARM_MISSED,
        recovery_tag=IssueTag.LEFT_ARM_RECOVERY,
        description="left arm",
    ),
    PairingRule(
        issue_tag=IssueTag.RIGHT_ARM_MISSED,
        recovery_tag=IssueTag.RIGHT_ARM_RECOVERY,
        description="right arm",
    ),
    PairingRule(
        issue_tag=IssueTag.LEFT_ARM_LITTER_STUCK_GRIPPER,
        recovery_tag=IssueTag.LEFT_ARM_RECOVERY,
        description="left arm",
    ),
    PairingRule(
        issue_tag=IssueTag.RIGHT_ARM_LITTER_STUCK_GRIPPER,
        recovery_tag=IssueTag.RIGHT_ARM_RECOVERY,
        description="right arm",
    ),
    PairingRule(
        issue_tag=IssueTag.LEFT_ARM_LITTER_DROPPED,
        recovery_tag=IssueTag.LEFT_ARM_RECOVERY,
        description="left arm",
    ),
    PairingRule(
        issue_tag=IssueTag.RIGHT_ARM_LITTER_DROPPED,
        recovery_tag=IssueTag.RIGHT_ARM_RECOVERY,
        description="right arm",
    ),
)
