"""
Image preprocessing for the OCR worker.

Change detection against the last processed frame, binarization, dilation
and rescaling. Everything here is a pure function of its inputs apart from
the optional preview publication.
"""

from typing import NamedTuple, Optional

import cv2
import numpy as np

from config import (
    ADAPTIVE_THRESHOLD_OFFSET,
    DILATION_KERNEL_SIZE,
    BinarizationMode,
    PipelineConfig,
)


class PreprocessResult(NamedTuple):
    image: Optional[np.ndarray]
    last_frame: Optional[np.ndarray]
    skip: bool
    scale: float = 1.0


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def to_bgra(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return image.copy()


def count_changed_pixels(frame: np.ndarray, last_frame: np.ndarray) -> int:
    """Number of pixels whose grayscale absolute difference is non-zero."""
    diff = cv2.absdiff(frame, last_frame)
    return int(cv2.countNonZero(to_gray(diff)))


def frame_has_changed(frame: np.ndarray, last_frame: Optional[np.ndarray], threshold_percent: float) -> bool:
    """
    Check whether frame differs enough from the last processed frame.

    Frames with no cached predecessor, or with different dimensions, always
    count as changed. An identical frame never counts as changed.
    """
    if last_frame is None or frame.shape != last_frame.shape:
        return True
    height, width = frame.shape[:2]
    min_changed = int(threshold_percent / 100.0 * width * height)
    changed = count_changed_pixels(frame, last_frame)
    return changed > 0 and changed >= min_changed


def binarize(image: np.ndarray, config: PipelineConfig) -> np.ndarray:
    """Apply the configured binarization policy. NONE returns the input untouched."""
    mode = config.binarization_mode
    if mode == BinarizationMode.NONE:
        return image

    gray = to_gray(image)

    if mode == BinarizationMode.THRESHOLD:
        _, binary = cv2.threshold(gray, config.binarization_threshold, 255, cv2.THRESH_BINARY)
    elif mode in (BinarizationMode.ADAPTIVE_MEAN, BinarizationMode.ADAPTIVE_GAUSSIAN):
        method = (cv2.ADAPTIVE_THRESH_MEAN_C if mode == BinarizationMode.ADAPTIVE_MEAN
                  else cv2.ADAPTIVE_THRESH_GAUSSIAN_C)
        binary = cv2.adaptiveThreshold(
            gray, 255, method, cv2.THRESH_BINARY,
            config.odd_block_size, ADAPTIVE_THRESHOLD_OFFSET
        )
    elif mode == BinarizationMode.TRIANGLE:
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_TRIANGLE)
    elif mode == BinarizationMode.OTSU:
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
    else:
        raise ValueError(f"Unknown binarization mode: {mode}")

    return binary


def dilate(image: np.ndarray, iterations: int) -> np.ndarray:
    if iterations <= 0:
        return image
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, DILATION_KERNEL_SIZE)
    return cv2.dilate(image, kernel, iterations=iterations)


def rescale_to_height(image: np.ndarray, target_height: int):
    """
    Resize keeping the aspect ratio so the height equals target_height.

    Returns:
        (resized image, applied scale factor)
    """
    scale = float(target_height) / float(image.shape[0])
    resized = cv2.resize(image, None, fx=scale, fy=scale)
    return resized, scale


def preprocess_frame(frame, config, last_frame=None, preview_sink=None) -> PreprocessResult:
    """
    Prepare a BGRA frame for recognition.

    Args:
        frame: Private BGRA copy of the current frame
        config: PipelineConfig snapshot
        last_frame: Last frame that was actually processed, or None
        preview_sink: Sink receiving the binarized/dilated image when
            config.preview_binarization is set

    Returns:
        PreprocessResult. When skip is True the image is None and
        last_frame is the unchanged cache.
    """
    if config.update_on_change and not frame_has_changed(
            frame, last_frame, config.update_on_change_threshold):
        return PreprocessResult(None, last_frame, True)

    new_cache = frame.copy()

    image = binarize(frame.copy(), config)
    image = dilate(image, config.dilation_iterations)

    if config.preview_binarization and preview_sink is not None:
        preview_sink.publish(to_bgra(image))

    scale = 1.0
    if config.rescale_image:
        image, scale = rescale_to_height(image, config.rescale_target_size)

    return PreprocessResult(image, new_cache, False, scale)
