"""Dataset host (metadata source) configuration."""

from pydantic import BaseModel, Field


class DatasetHostConfig(BaseModel):
    """Where dataset metadata and lineage documents are fetched from."""

    base_url: str = Field(
        default="https://huggingface.co/datasets",
        description="Root URL under which '<org>/<dataset>/resolve/<rev>/...' lives",
    )
    revision: str = Field(default="main", description="Revision to read metadata from")
    token: str | None = Field(
        default=None,
        description="Access token; falls back to HF_TOKEN and friends",
    )
    timeout: float = Field(default=15.0, gt=0, description="Request timeout in seconds")
    supported_versions: list[str] = Field(
        default_factory=lambda: ["v3.0", "v2.1", "v2.0"],
        description="Accepted codebase_version values",
    )
    info_path: str = Field(default="meta/info.json")
    lineage_path: str = Field(default="meta/episodes.jsonl")
