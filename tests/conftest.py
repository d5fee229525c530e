"""
Pytest configuration and shared fixtures for the live OCR tests.

This module provides:
- Synthetic BGRA frames
- A scripted stand-in for the Tesseract backend
- Pipeline contexts wired to fresh sinks

Usage:
    pytest tests/ -v
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import PipelineConfig  # noqa: E402
from ocr_types import BackendRegion, PageIteratorLevel  # noqa: E402
from output_sinks import ImageSink, TextSink  # noqa: E402


# =============================================================================
# Fake Backend
# =============================================================================

class FakeBackend:
    """Backend returning scripted results instead of running Tesseract."""

    def __init__(self, language="eng", tessdata_path=None, init_configs=None,
                 text="", confidence=0.0, words=None, symbols=None, error=None):
        self.language = language
        self.tessdata_path = tessdata_path
        self.init_configs = list(init_configs or [])
        self.text = text
        self.confidence = confidence
        self.words = list(words or [])
        self.symbols = list(symbols or [])
        self.error = error
        self.page_segmentation_mode = None
        self.char_whitelist = None
        self.images = []
        self.ended = False

    def configure(self, page_segmentation_mode, char_whitelist=""):
        self.page_segmentation_mode = page_segmentation_mode
        self.char_whitelist = char_whitelist

    def run(self, image):
        if self.error is not None:
            raise self.error
        self.images.append(image)
        return self.text, self.confidence

    def iterate(self, level):
        regions = self.symbols if level == PageIteratorLevel.SYMBOL else self.words
        yield from regions

    def end(self):
        self.ended = True


@pytest.fixture
def fake_backend_factory():
    """
    Returns a factory with the backend_factory signature. Created backends are
    recorded on factory.created.
    """
    def factory(**script):
        def build(language="eng", tessdata_path=None, init_configs=None):
            backend = FakeBackend(language, tessdata_path, init_configs, **script)
            build.created.append(backend)
            return backend
        build.created = []
        return build
    return factory


# =============================================================================
# Frames
# =============================================================================

def make_frame(width=100, height=100, value=255):
    frame = np.full((height, width, 4), value, dtype=np.uint8)
    frame[:, :, 3] = 255
    return frame


@pytest.fixture
def white_frame():
    return make_frame()


@pytest.fixture
def word_frame():
    """100x100 white frame with a dark 20x20 block at (30, 40)."""
    frame = make_frame()
    frame[40:60, 30:50, :3] = 20
    return frame


@pytest.fixture
def word_region():
    return BackendRegion(text="SCORE", confidence=80.0, left=30, top=40, right=50, bottom=60)


# =============================================================================
# Sinks
# =============================================================================

@pytest.fixture
def sinks():
    return TextSink("text"), ImageSink("detection"), ImageSink("preview")


@pytest.fixture
def default_config():
    return PipelineConfig()
