"""
Image Processing Pipeline

process_image() runs one file through upscale -> optimize -> cleanup and
reports through the progress broadcaster. BatchDispatcher turns a batch
request into a background task that feeds files to process_image() one at
a time.
"""

import asyncio
from typing import List, Set

from imageforge.core.config import ConfigStore, Settings, UpscalerConfig, settings
from imageforge.core.events import EventBroadcaster
from imageforge.core.logging import LogContext, get_logger
from imageforge.core.metrics import (
    active_batches_gauge,
    record_image_outcome,
    record_upscaler_invocation,
    track_stage_latency,
)
from imageforge.core.storage import LocalStorage, safe_filename
from imageforge.modules.imagery.models import (
    CompleteEvent,
    ErrorEvent,
    PipelineStage,
    ProcessingSettings,
    StartEvent,
    StepEvent,
)
from imageforge.pipeline.stages import describe_image, encode_tagged_jpeg, normalize_image
from imageforge.pipeline.upscaler import run_upscaler

logger = get_logger(__name__)

# Batch request sentinel for "everything currently in input/"
ALL_FILES = "all"

UPSCALER_MISSING_MESSAGE = "⚠️ Upscayl not found - skipping upscaling"
UPSCALING_MESSAGE = "Upscaling..."
OPTIMIZING_MESSAGE = "Optimizing & Tagging..."


async def process_image(
    file_name: str,
    processing: ProcessingSettings,
    config: UpscalerConfig,
    storage: LocalStorage,
    broadcaster: EventBroadcaster,
    app_settings: Settings = settings
) -> None:
    """
    Process one image from input/ into output/<stem>.jpg.

    Emits exactly one start event and one terminal event (complete or
    error), with step events in between. Never raises: any failure becomes
    an error event and leaves the input file in place.
    """
    input_path = storage.input_path(file_name)
    temp_path = storage.temp_path(file_name)
    output_path = storage.output_path(file_name)

    with LogContext(file=file_name) as log_context:
        broadcaster.publish(StartEvent(file=file_name))
        logger.info(
            "image_processing_started",
            upscale=processing.upscale,
            model=processing.model or None
        )

        try:
            current_path = input_path

            # 1. Upscale if requested
            if processing.upscale:
                log_context.set_stage(PipelineStage.UPSCALE.value)

                if not config.available:
                    logger.warning("upscaler_not_found", binary=config.upscayl_bin)
                    record_upscaler_invocation("skipped")
                    broadcaster.publish(StepEvent(file=file_name, message=UPSCALER_MISSING_MESSAGE))
                else:
                    broadcaster.publish(StepEvent(file=file_name, message=UPSCALING_MESSAGE))
                    with track_stage_latency(PipelineStage.UPSCALE.value):
                        current_path = await run_upscaler(
                            config,
                            input_path,
                            temp_path,
                            model=processing.model or app_settings.DEFAULT_MODEL,
                            scale=app_settings.UPSCALE_FACTOR,
                            output_format=app_settings.UPSCALE_OUTPUT_FORMAT
                        )

            # 2. Normalize color space and metadata, re-encode as JPEG
            log_context.set_stage(PipelineStage.OPTIMIZE.value)
            broadcaster.publish(StepEvent(file=file_name, message=OPTIMIZING_MESSAGE))

            with track_stage_latency(PipelineStage.OPTIMIZE.value):
                original_metadata = await asyncio.to_thread(describe_image, current_path)
                logger.info("original_metadata", **original_metadata)

                clean_bytes = await asyncio.to_thread(normalize_image, current_path)
                await asyncio.to_thread(
                    encode_tagged_jpeg,
                    clean_bytes,
                    output_path,
                    file_name,
                    app_settings.ARTIST,
                    app_settings.COPYRIGHT,
                    app_settings.JPEG_QUALITY
                )

            # 3. Cleanup; a file left in input/ has not been processed yet
            log_context.set_stage(PipelineStage.CLEANUP.value)
            storage.delete(temp_path)
            if storage.delete(input_path):
                logger.info("input_deleted")

            output_url = storage.output_url(output_path)
            broadcaster.publish(CompleteEvent(file=file_name, output=output_url))
            record_image_outcome("complete")
            logger.info("image_processed", output=output_url, artist=app_settings.ARTIST)

        except Exception as e:
            logger.error(
                "image_processing_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )
            record_image_outcome("error")
            broadcaster.publish(ErrorEvent(file=file_name, message=str(e)))


class BatchDispatcher:
    """
    Resolves batch requests and runs each batch as a background task.

    Files inside a batch are strictly sequential. Separate batches are not
    serialized against each other: a second request while one is running
    starts a second task, and the two interleave.
    """

    def __init__(
        self,
        storage: LocalStorage,
        config_store: ConfigStore,
        broadcaster: EventBroadcaster,
        app_settings: Settings = settings
    ):
        self.storage = storage
        self.config_store = config_store
        self.broadcaster = broadcaster
        self.app_settings = app_settings
        self._batches: Set[asyncio.Task] = set()

    @property
    def running_batches(self) -> int:
        return len(self._batches)

    def resolve(self, filename: str) -> List[str]:
        """Turn a batch request target into a concrete ordered file list."""
        if filename == ALL_FILES:
            return self.storage.list_inputs()
        return [safe_filename(filename)]

    async def run_batch(self, files: List[str], processing: ProcessingSettings):
        active_batches_gauge.inc()
        try:
            for file_name in files:
                # Snapshot per file: a config change applies from the next file on
                config = self.config_store.get()
                await process_image(
                    file_name,
                    processing,
                    config,
                    self.storage,
                    self.broadcaster,
                    self.app_settings
                )
        finally:
            active_batches_gauge.dec()
            logger.info("batch_finished", count=len(files))

    def dispatch(self, filename: str, processing: ProcessingSettings) -> int:
        """
        Start processing in the background and return the file count.

        Must be called from a running event loop.
        """
        files = self.resolve(filename)
        logger.info(
            "batch_started",
            count=len(files),
            target=filename,
            upscale=processing.upscale
        )

        if files:
            task = asyncio.create_task(self.run_batch(files, processing))
            self._batches.add(task)
            task.add_done_callback(self._batches.discard)

        return len(files)

    async def join(self):
        """Wait until every dispatched batch has finished."""
        while self._batches:
            await asyncio.gather(*list(self._batches))
