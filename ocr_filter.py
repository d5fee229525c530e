import logging
import threading
import uuid
from dataclasses import asdict

from camera_feed import FrameBuffer
from config import CONFIG_DIR, LifecycleState, PipelineConfig
from config_files import cleanup_config_files, mask_image_path, write_user_patterns
from ocr_processor import RecognitionAdapter, TesseractBackend
from ocr_worker import PipelineContext, WorkerLoop
from output_sinks import ImageSink, TextSink
from region_processor import render_text_overlay
from smoothing import CharacterBasedSmoothingFilter

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class OCRFilter:
    """
    Host-facing OCR filter.

    Owns the configuration, the frame buffer, the output sinks and the
    backend/worker pair. The pair moves through
    UNINITIALIZED -> RUNNING -> STOPPED -> UNINITIALIZED. stop() only joins the
    worker; a hard reset or destroy() then releases the backend, always after
    the worker has been joined.
    """

    def __init__(self, config=None, unique_id=None, config_dir=CONFIG_DIR,
                 backend_factory=TesseractBackend, overlay_renderer=render_text_overlay,
                 text_formatter=None, text_callback=None, image_callback=None,
                 save_detection_image=False):
        self.unique_id = unique_id or uuid.uuid4().hex
        self.config_dir = config_dir
        self.backend_factory = backend_factory
        self.backend = None
        self.state = LifecycleState.UNINITIALIZED
        self._lifecycle_lock = threading.RLock()

        self.frame_buffer = FrameBuffer()
        self.text_sink = TextSink("text", callback=text_callback)
        self.image_sink = ImageSink(
            "detection",
            callback=image_callback,
            save_path=mask_image_path(self.unique_id, config_dir) if save_detection_image else None,
        )
        self.preview_sink = ImageSink("preview")

        self.context = PipelineContext(
            config or PipelineConfig(),
            text_sink=self.text_sink,
            image_sink=self.image_sink,
            preview_sink=self.preview_sink,
            overlay_renderer=overlay_renderer,
            text_formatter=text_formatter,
        )
        self.worker = WorkerLoop(self.context, self.frame_buffer, name=f"ocr-worker-{self.unique_id[:8]}")

    @property
    def config(self):
        return self.context.config

    def is_running(self):
        return self.state == LifecycleState.RUNNING

    def initialize(self, hard_reset=True):
        """
        (Re)initialize the backend.

        A hard reset stops the worker, releases the backend, loads a new one
        and restarts the worker. A soft one only re-applies live settings.

        Returns:
            True on success. Failures are logged and leave the filter idle.
        """
        with self._lifecycle_lock:
            try:
                if hard_reset:
                    self._teardown()

                with self.context.settings_lock:
                    config = self.context.config
                    init_configs = write_user_patterns(self.unique_id, config.user_patterns, self.config_dir)

                    if hard_reset:
                        logger.info(f"Loading OCR backend for language '{config.language}'")
                        self.backend = self.backend_factory(
                            language=config.language,
                            tessdata_path=config.tessdata_path,
                            init_configs=init_configs,
                        )
                        self.context.adapter = RecognitionAdapter(
                            self.backend,
                            conf_threshold=config.conf_threshold,
                            page_segmentation_mode=config.page_segmentation_mode,
                            char_whitelist=config.char_whitelist,
                        )
                        self.context.last_frame = None
                    elif self.context.adapter is None:
                        logger.warning("OCR backend not loaded, cannot apply settings")
                        return False
                    else:
                        self.context.adapter.configure(
                            config.conf_threshold, config.page_segmentation_mode, config.char_whitelist
                        )

                    if config.enable_smoothing:
                        self.context.smoothing_filter = CharacterBasedSmoothingFilter(
                            config.word_length, config.window_size
                        )
                    else:
                        self.context.smoothing_filter = None

                if hard_reset:
                    self.worker.start()
                    self.state = LifecycleState.RUNNING
                    logger.info("OCR filter initialized successfully")
                return True

            except Exception as e:
                logger.error(f"Failed to load OCR backend: {e}")
                return False

    def update(self, settings):
        """
        Apply new settings, given as a PipelineConfig or a partial mapping.
        Changes the backend cannot apply live trigger a hard reset.
        """
        with self._lifecycle_lock:
            current = self.context.config
            if isinstance(settings, PipelineConfig):
                new_config = settings
            else:
                merged = asdict(current)
                merged.update(settings)
                new_config = PipelineConfig.from_settings(merged)

            hard_reset = self.state != LifecycleState.RUNNING or current.requires_hard_reset(new_config)
            with self.context.settings_lock:
                self.context.config = new_config

            logger.info(f"Applying OCR settings ({'hard' if hard_reset else 'soft'} reset)")
            return self.initialize(hard_reset=hard_reset)

    def push_frame(self, frame):
        """Producer entry point: hand the latest BGRA frame to the filter."""
        self.frame_buffer.put(frame)

    def get_text(self):
        return self.text_sink.latest()

    def get_detection_image(self):
        return self.image_sink.latest()

    def get_preview_image(self):
        return self.preview_sink.latest()

    def _stop_worker(self):
        if self.state == LifecycleState.RUNNING:
            self.worker.stop()
            self.state = LifecycleState.STOPPED

    def _teardown(self):
        self._stop_worker()

        if self.backend is not None:
            with self.context.settings_lock:
                self.context.adapter = None
                self.context.smoothing_filter = None
                self.backend.end()
                self.backend = None
        self.state = LifecycleState.UNINITIALIZED

    def stop(self):
        """Stop the worker. The backend stays loaded until the next hard reset or destroy()."""
        with self._lifecycle_lock:
            self._stop_worker()

    def destroy(self):
        """Stop everything and remove this instance's files from the config folder."""
        with self._lifecycle_lock:
            self._teardown()
            self.frame_buffer.clear()
            cleanup_config_files(self.unique_id, self.config_dir)
            logger.info(f"OCR filter {self.unique_id} destroyed")
