"""Issue/recovery tag pairing rules and the consistency checker."""

from labelsync.pairing.checker import (
    PairingMismatch,
    check_pairing,
    find_pairing_mismatches,
    recovery_groups,
)
from labelsync.pairing.models import DEFAULT_PAIRING_TABLE, PairingRule

__all__ = [
    "DEFAULT_PAIRING_TABLE",
    "PairingMismatch",
    "PairingRule",
    "check_pairing",
    "find_pairing_mismatches",
    "recovery_groups",
]
