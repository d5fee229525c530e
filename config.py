"""
Configuration for the live OCR filter.

Module-level constants are the defaults; PipelineConfig is the immutable
snapshot the worker reads once per iteration.
"""

import os
from dataclasses import dataclass, fields
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional

# Module config folder (user patterns, mask artifacts)
CONFIG_DIR = os.environ.get(
    "OCR_FILTER_CONFIG_DIR",
    os.path.join(os.path.expanduser("~"), ".config", "ocr_filter"),
)

# Tesseract configuration
DEFAULT_LANGUAGE = "eng"
DEFAULT_PAGE_SEGMENTATION_MODE = 6   # PSM 6: single uniform block of text
PSM_SINGLE_CHAR = 10                 # PSM 10: treat the image as a single character
OCR_ENGINE_MODE = 1                  # OEM 1: LSTM only
CONFIDENCE_THRESHOLD = 50            # Minimum mean confidence (Tesseract scale 0-100)

# Binarization configuration
BINARIZATION_THRESHOLD = 127
BINARIZATION_BLOCK_SIZE = 15
ADAPTIVE_THRESHOLD_OFFSET = 2        # Constant subtracted from the local mean
DILATION_KERNEL_SIZE = (3, 3)

# Rescale configuration
RESCALE_TARGET_SIZE = 35             # Target height in pixels

# Change detection configuration
UPDATE_ON_CHANGE_THRESHOLD = 5       # Percent of pixels that must differ

# Smoothing configuration
WORD_LENGTH = 5
WINDOW_SIZE = 10

# Region filtering configuration
MIN_REGION_AREA = 100                # Regions below this area (px^2) are dropped

# Worker configuration
UPDATE_TIMER_MS = 100                # Target loop period

# Camera configuration
CAMERA_SOURCE = 0                    # Camera source (0 for default camera)

# Display configuration
WINDOW_TITLE = "Live OCR"
PREVIEW_WINDOW_TITLE = "Live OCR - Binarization Preview"
DETECTION_WINDOW_TITLE = "Live OCR - Detection"
INFO_TEXT_COLOR = (255, 255, 255)    # White color for info text
DISPLAY_SLEEP_TIME = 0.03            # Pause between display refreshes


class BinarizationMode(IntEnum):
    NONE = 0
    THRESHOLD = 1
    ADAPTIVE_MEAN = 2
    ADAPTIVE_GAUSSIAN = 3
    TRIANGLE = 4
    OTSU = 5


class ImageOutputMode(IntEnum):
    DETECTION_MASK = 0
    TEXT_OVERLAY = 1
    TEXT_BACKGROUND = 2


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPED = "stopped"


# Settings the backend cannot apply without a full reload
HARD_RESET_FIELDS = ("language", "tessdata_path", "user_patterns")


@dataclass(frozen=True)
class PipelineConfig:
    """Snapshot of every setting the recognition pipeline reads."""
    # Backend
    language: str = DEFAULT_LANGUAGE
    tessdata_path: Optional[str] = None
    user_patterns: str = ""
    char_whitelist: str = ""
    page_segmentation_mode: int = DEFAULT_PAGE_SEGMENTATION_MODE
    conf_threshold: int = CONFIDENCE_THRESHOLD

    # Preprocessing
    binarization_mode: BinarizationMode = BinarizationMode.NONE
    binarization_threshold: int = BINARIZATION_THRESHOLD
    binarization_block_size: int = BINARIZATION_BLOCK_SIZE
    dilation_iterations: int = 0
    rescale_image: bool = False
    rescale_target_size: int = RESCALE_TARGET_SIZE
    update_on_change: bool = True
    update_on_change_threshold: int = UPDATE_ON_CHANGE_THRESHOLD
    preview_binarization: bool = False

    # Smoothing
    enable_smoothing: bool = False
    word_length: int = WORD_LENGTH
    window_size: int = WINDOW_SIZE

    # Output routing
    output_text_enabled: bool = True
    output_image_enabled: bool = False
    output_image_option: ImageOutputMode = ImageOutputMode.DETECTION_MASK

    update_timer_ms: int = UPDATE_TIMER_MS

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "PipelineConfig":
        """Build a config from a host settings mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in settings.items() if key in known}
        if "binarization_mode" in values:
            values["binarization_mode"] = BinarizationMode(int(values["binarization_mode"]))
        if "output_image_option" in values:
            values["output_image_option"] = ImageOutputMode(int(values["output_image_option"]))
        return cls(**values)

    def requires_hard_reset(self, other: "PipelineConfig") -> bool:
        """True when switching from self to other needs the backend reloaded."""
        return any(getattr(self, name) != getattr(other, name) for name in HARD_RESET_FIELDS)

    @property
    def odd_block_size(self) -> int:
        # Adaptive thresholding only accepts odd block sizes
        block_size = max(3, self.binarization_block_size)
        if block_size % 2 == 0:
            block_size += 1
        return block_size

    @property
    def period_seconds(self) -> float:
        return max(0, self.update_timer_ms) / 1000.0
