"""Tag vocabularies for episode and frame annotations."""

from enum import Enum


class QualityTag(str, Enum):
    """Overall quality verdict for an episode."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNUSABLE = "unusable"


class KeyNoteTag(str, Enum):
    """Notable events flagged at episode level."""

    FAILED_ATTEMPT = "failed_attempt"
    KNOCKED_SINK = "knocked_sink"
    LITTER_STUCK_GRIPPER = "litter_stuck_gripper"
    COLLISION = "collision"
    LITTER_FALL_OF_TABLE = "litter_fall_of_table"


class ArmsUsed(str, Enum):
    """Which arms the demonstrator used during the episode."""

    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


class PhaseTag(str, Enum):
    """Task phase a frame belongs to."""

    LEFT_ARM_PICK_LITTER = "left_arm_pick_litter"
    RIGHT_ARM_PICK_LITTER = "right_arm_pick_litter"
    LEFT_ARM_BIN_LITTER = "left_arm_bin_litter"
    RIGHT_ARM_BIN_LITTER = "right_arm_bin_litter"
    END_TASK = "end_task"


class IssueTag(str, Enum):
    """Problems (and recoveries from them) observed on a frame.

    Recovery tags live in the same vocabulary as the issues they resolve
    so a frame can carry both.
    """

    FROZEN_CAM = "frozen_cam"
    LEFT_ARM_MISSED = "left_arm_missed"
    RIGHT_ARM_MISSED = "right_arm_missed"
    COLLISION_BETWEEN_ARMS = "collision_between_arms"
    LEFT_ARM_COLLISION = "left_arm_collision"
    RIGHT_ARM_COLLISION = "right_arm_collision"
    LEFT_ARM_LITTER_STUCK_GRIPPER = "left_arm_litter_stuck_gripper"
    RIGHT_ARM_LITTER_STUCK_GRIPPER = "right_arm_litter_stuck_gripper"
    LEFT_ARM_LITTER_DROPPED = "left_arm_litter_dropped"
    RIGHT_ARM_LITTER_DROPPED = "right_arm_litter_dropped"
    LEFT_ARM_RECOVERY = "left_arm_recovery"
    RIGHT_ARM_RECOVERY = "right_arm_recovery"
