"""Annotation behaviour configuration."""

from pydantic import BaseModel, Field

from labelsync.pairing.models import DEFAULT_PAIRING_TABLE, PairingRule


class AnnotationConfig(BaseModel):
    """Frame derivation and cross-field consistency settings."""

    fps: int = Field(
        default=30,
        gt=0,
        description="Frame rate used to turn playback seconds into frame indexes",
    )
    pairing: list[PairingRule] = Field(
        default_factory=lambda: list(DEFAULT_PAIRING_TABLE),
        description="Issue tags that must be balanced by a recovery tag",
    )
