"""
Tests for the OCR filter lifecycle: hard and soft resets, failed backend
loads and per-instance file cleanup.

Usage:
    pytest tests/test_ocr_filter.py -v
"""

import os
import time

import pytest

from config import ImageOutputMode, LifecycleState, PipelineConfig
from config_files import mask_image_path, user_patterns_config_path, user_patterns_path
from ocr_filter import OCRFilter


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def make_filter(tmp_path):
    filters = []

    def make(backend_factory, config=None, **kwargs):
        ocr_filter = OCRFilter(
            config or PipelineConfig(update_timer_ms=10),
            unique_id="test-instance",
            config_dir=str(tmp_path),
            backend_factory=backend_factory,
            **kwargs,
        )
        filters.append(ocr_filter)
        return ocr_filter

    yield make
    for ocr_filter in filters:
        ocr_filter.destroy()


class TestInitialization:

    def test_hard_init_starts_worker(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory(text="42", confidence=90.0)
        ocr_filter = make_filter(factory)

        assert ocr_filter.initialize(hard_reset=True)
        assert ocr_filter.state == LifecycleState.RUNNING
        assert ocr_filter.worker.is_running()
        assert len(factory.created) == 1

    def test_failed_backend_leaves_filter_idle(self, make_filter):
        def broken_factory(**kwargs):
            raise RuntimeError("Failed to initialize tesseract model")

        ocr_filter = make_filter(broken_factory)
        assert not ocr_filter.initialize(hard_reset=True)
        assert ocr_filter.state == LifecycleState.UNINITIALIZED
        assert not ocr_filter.worker.is_running()
        assert ocr_filter.context.adapter is None

    def test_soft_init_without_backend_fails(self, make_filter, fake_backend_factory):
        ocr_filter = make_filter(fake_backend_factory())
        assert not ocr_filter.initialize(hard_reset=False)

    def test_frames_flow_to_text_sink(self, make_filter, fake_backend_factory, word_frame):
        received = []
        ocr_filter = make_filter(fake_backend_factory(text=" 42 ", confidence=90.0), text_callback=received.append)
        ocr_filter.initialize()
        ocr_filter.push_frame(word_frame)

        assert wait_until(lambda: ocr_filter.get_text() == "42")
        assert received[0] == "42"

    def test_user_patterns_passed_as_init_config(self, make_filter, fake_backend_factory, tmp_path):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory, PipelineConfig(user_patterns="\\d\\d:\\d\\d"))
        ocr_filter.initialize()

        config_path = user_patterns_config_path("test-instance", str(tmp_path))
        assert factory.created[0].init_configs == [config_path]
        with open(config_path) as f:
            assert f.read() == f"user_patterns_file {user_patterns_path('test-instance', str(tmp_path))}\n"


class TestReconfiguration:

    def test_live_setting_is_soft_reset(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory)
        ocr_filter.initialize()
        worker_thread = ocr_filter.worker._thread

        assert ocr_filter.update({"page_segmentation_mode": 7, "conf_threshold": 20})
        assert len(factory.created) == 1
        assert ocr_filter.worker._thread is worker_thread
        assert factory.created[0].page_segmentation_mode == 7
        assert ocr_filter.context.adapter.conf_threshold == 20

    def test_language_change_is_hard_reset(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory)
        ocr_filter.initialize()
        first_thread = ocr_filter.worker._thread

        assert ocr_filter.update({"language": "deu"})
        assert len(factory.created) == 2
        assert factory.created[0].ended
        assert factory.created[1].language == "deu"
        assert not first_thread.is_alive()
        assert ocr_filter.state == LifecycleState.RUNNING

    def test_hard_reset_clears_change_cache(self, make_filter, fake_backend_factory, word_frame):
        ocr_filter = make_filter(fake_backend_factory())
        ocr_filter.initialize()
        ocr_filter.context.last_frame = word_frame
        ocr_filter.initialize(hard_reset=True)
        assert ocr_filter.context.last_frame is None

    def test_smoothing_recreated_on_init(self, make_filter, fake_backend_factory):
        ocr_filter = make_filter(fake_backend_factory(), PipelineConfig(enable_smoothing=True, word_length=3))
        ocr_filter.initialize()
        first = ocr_filter.context.smoothing_filter
        assert first.word_length == 3

        ocr_filter.update({"word_length": 6})
        assert ocr_filter.context.smoothing_filter is not first
        assert ocr_filter.context.smoothing_filter.word_length == 6

    def test_update_accepts_full_config(self, make_filter, fake_backend_factory):
        ocr_filter = make_filter(fake_backend_factory())
        ocr_filter.initialize()
        new_config = PipelineConfig(update_timer_ms=10, binarization_mode=3)
        ocr_filter.update(new_config)
        assert ocr_filter.config is new_config


class TestTeardown:

    def test_stop_joins_worker_and_keeps_backend(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory)
        ocr_filter.initialize()
        thread = ocr_filter.worker._thread

        ocr_filter.stop()
        assert not thread.is_alive()
        assert ocr_filter.state == LifecycleState.STOPPED
        assert not factory.created[0].ended
        assert ocr_filter.backend is factory.created[0]

    def test_destroy_after_stop_releases_backend(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory)
        ocr_filter.initialize()
        ocr_filter.stop()

        ocr_filter.destroy()
        assert factory.created[0].ended
        assert ocr_filter.backend is None
        assert ocr_filter.state == LifecycleState.UNINITIALIZED

    def test_update_after_stop_reloads_backend(self, make_filter, fake_backend_factory):
        factory = fake_backend_factory()
        ocr_filter = make_filter(factory)
        ocr_filter.initialize()
        ocr_filter.stop()

        assert ocr_filter.update({"conf_threshold": 30})
        assert ocr_filter.state == LifecycleState.RUNNING
        assert factory.created[0].ended
        assert len(factory.created) == 2
        assert ocr_filter.worker.is_running()

    def test_destroy_removes_instance_files(self, make_filter, fake_backend_factory, word_frame, tmp_path):
        config = PipelineConfig(
            update_timer_ms=10,
            user_patterns="\\d\\d",
            output_image_enabled=True,
            output_image_option=ImageOutputMode.DETECTION_MASK,
        )
        ocr_filter = make_filter(fake_backend_factory(text="12", confidence=90.0), config,
                                 save_detection_image=True)
        ocr_filter.initialize()
        ocr_filter.push_frame(word_frame)

        mask_path = mask_image_path("test-instance", str(tmp_path))
        assert wait_until(lambda: os.path.exists(mask_path))

        ocr_filter.destroy()
        assert not os.path.exists(mask_path)
        assert ocr_filter.frame_buffer.try_snapshot() is None
        assert not os.path.exists(user_patterns_path("test-instance", str(tmp_path)))
        assert not os.path.exists(user_patterns_config_path("test-instance", str(tmp_path)))

    def test_destroy_twice_is_safe(self, make_filter, fake_backend_factory):
        ocr_filter = make_filter(fake_backend_factory())
        ocr_filter.initialize()
        ocr_filter.destroy()
        ocr_filter.destroy()
        assert ocr_filter.state == LifecycleState.UNINITIALIZED
