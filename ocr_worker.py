"""
Recognition worker: one pipeline pass per period on a dedicated thread.

The worker never waits on the frame producer. It tries the frame buffer
lock, and when the producer holds it the iteration simply does nothing and
goes back to sleep.
"""

import logging
import threading
import time
from typing import List, NamedTuple, Optional

from ocr_types import Region
from preprocessing import preprocess_frame
from region_processor import compose_detection_output, render_text_overlay

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class PipelineOutput(NamedTuple):
    text: str
    confidence: float
    regions: List[Region]


class PipelineContext:
    """
    Mutable state shared by the pipeline stages: settings, backend adapter,
    change-detection cache, smoothing windows and output sinks. Everything
    except the sinks is read and written under settings_lock.
    """

    def __init__(self, config, text_sink=None, image_sink=None, preview_sink=None,
                 overlay_renderer=render_text_overlay, text_formatter=None):
        self.settings_lock = threading.Lock()
        self.config = config
        self.adapter = None
        self.smoothing_filter = None
        self.last_frame = None
        self.text_sink = text_sink
        self.image_sink = image_sink
        self.preview_sink = preview_sink
        self.overlay_renderer = overlay_renderer
        self.text_formatter = text_formatter


def process_frame(context, frame) -> Optional[PipelineOutput]:
    """
    Run one pipeline pass on a private frame copy. The caller holds
    context.settings_lock.

    Returns:
        PipelineOutput, or None when there is no backend or the frame did not
        change enough to be processed
    """
    config = context.config
    adapter = context.adapter
    if adapter is None:
        return None

    prepared = preprocess_frame(frame, config, context.last_frame, context.preview_sink)
    if prepared.skip:
        logger.debug("Frame unchanged, skipping recognition")
        return None
    context.last_frame = prepared.last_frame

    recognition = adapter.recognize(prepared.image)
    text = recognition.text
    # Confident blank readings vote too, so a cleared display eventually wins
    accepted = recognition.confidence >= adapter.conf_threshold
    if accepted and config.enable_smoothing and context.smoothing_filter is not None:
        text = context.smoothing_filter.add_reading(text)

    regions = []
    if config.output_image_enabled and context.image_sink is not None:
        height, width = frame.shape[:2]
        regions = adapter.detect_regions(frame, config.page_segmentation_mode, prepared.scale)
        detection_image = compose_detection_output(
            regions, width, height, config.output_image_option, context.overlay_renderer
        )
        context.image_sink.publish(detection_image)

    if text and config.output_text_enabled and context.text_sink is not None:
        output_text = context.text_formatter(text) if context.text_formatter else text
        context.text_sink.publish(output_text)

    return PipelineOutput(text, recognition.confidence, regions)


class WorkerLoop:
    def __init__(self, context, frame_buffer, name="ocr-worker"):
        self.context = context
        self.frame_buffer = frame_buffer
        self.name = name
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)
        self._running = False
        self._thread = None
        self.processed_count = 0
        self.failure_count = 0

    def is_running(self):
        with self._lock:
            return self._running and self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start the worker thread. No-op while a worker is already alive."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.info("OCR worker already running")
                return
            self._running = True
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def stop(self):
        """Signal the worker, wake it from its sleep and wait for it to exit."""
        with self._condition:
            self._running = False
            self._condition.notify_all()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join()
        with self._lock:
            if self._thread is thread:
                self._thread = None

    def run_once(self) -> Optional[PipelineOutput]:
        """One iteration without the sleep. Never raises."""
        frame = self.frame_buffer.try_snapshot()
        if frame is None:
            return None

        try:
            with self.context.settings_lock:
                output = process_frame(self.context, frame)
        except Exception as e:
            self.failure_count += 1
            logger.error(f"OCR iteration failed: {e}")
            return None

        if output is not None:
            self.processed_count += 1
        return output

    def _should_run(self):
        with self._lock:
            return self._running

    def _run(self):
        logger.info(f"Starting OCR worker thread, update timer: {self.context.config.update_timer_ms}ms")

        while self._should_run():
            start_time = time.monotonic()
            self.run_once()
            elapsed = time.monotonic() - start_time

            remaining = self.context.config.period_seconds - elapsed
            if remaining > 0:
                with self._condition:
                    self._condition.wait_for(lambda: not self._running, timeout=remaining)

        logger.info("Stopping OCR worker thread")
