"""Bootstrap module for wiring a labelling session from configuration.

Handles:
- Loading settings from TOML files and the environment
- Configuring structured logging
- Creating the annotation store for the configured backend
- Creating the dataset host client, lineage resolver and commit protocol
- Creating the AnnotationSessionController with all dependencies

Example usage:

    from labelsync.bootstrap import bootstrap

    controller, ctx = bootstrap(labeller_id="alice")

    await controller.open(DatasetIdentity.from_repo_id("org/dataset"), 3)
    controller.edit_frame({"issue_tags": ["left_arm_missed"]}, frame_index=120)
    await controller.save()

    await ctx.close()
"""

from dataclasses import dataclass

import httpx

from labelsync.annotations.factory import create_annotation_store
from labelsync.annotations.store import AnnotationStore
from labelsync.annotations.stores.postgres import PostgresAnnotationStore
from labelsync.annotations.stores.postgrest import PostgRESTAnnotationStore
from labelsync.commit.protocol import BatchCommitProtocol
from labelsync.config import get_settings
from labelsync.config.settings import Settings
from labelsync.lineage.resolver import LineageResolver
from labelsync.lineage.source import DatasetHostClient
from labelsync.observability.logging import get_logger, setup_logging
from labelsync.session.controller import AnnotationSessionController
from labelsync.session.models import ConfirmCallback, PlaybackClock

logger = get_logger(__name__)


@dataclass
class BootstrapContext:
    """Everything bootstrap created, for access and cleanup."""

    settings: Settings
    store: AnnotationStore
    client: DatasetHostClient
    resolver: LineageResolver
    committer: BatchCommitProtocol

    async def close(self) -> None:
        """Close network clients and pools."""
        await self.client.close()
        if isinstance(self.store, PostgresAnnotationStore | PostgRESTAnnotationStore):
            await self.store.close()


def bootstrap(
    settings: Settings | None = None,
    labeller_id: str | None = None,
    confirm: ConfirmCallback | None = None,
    clock: PlaybackClock | None = None,
    store: AnnotationStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[AnnotationSessionController, BootstrapContext]:
    """Bootstrap a fully-configured AnnotationSessionController.

    Args:
        settings: Settings to use (default: get_settings())
        labeller_id: Logged-in labeller, may be set on the controller later
        confirm: Async yes/no prompt for unsaved changes, pairing warnings
            and clear-all
        clock: Playback clock for edits without an explicit frame index
        store: Override the configured annotation store
        transport: Optional httpx transport for the dataset host client

    Returns:
        Tuple of (AnnotationSessionController, BootstrapContext)
    """
    settings = settings or get_settings()

    log_config = settings.observability.logging
    setup_logging(
        level=log_config.level,
        format=log_config.format,
        redact_secrets=log_config.redact_secrets,
    )

    annotation_store = store or create_annotation_store(settings.storage)
    client = DatasetHostClient(settings.dataset_host, transport=transport)
    resolver = LineageResolver(client)
    committer = BatchCommitProtocol(annotation_store)

    controller = AnnotationSessionController(
        resolver=resolver,
        committer=committer,
        labeller_id=labeller_id,
        confirm=confirm,
        clock=clock,
        fps=settings.annotation.fps,
        pairing_table=settings.annotation.pairing,
    )

    logger.info(
        "session_bootstrapped",
        backend=settings.storage.backend,
        dataset_host=settings.dataset_host.base_url,
        fps=settings.annotation.fps,
        pairing_rules=len(settings.annotation.pairing),
    )

    ctx = BootstrapContext(
        settings=settings,
        store=annotation_store,
        client=client,
        resolver=resolver,
        committer=committer,
    )
    return controller, ctx
