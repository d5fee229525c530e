"""
Output sinks for OCR results.

Each sink guards its latest value with its own lock so readers never hold up
the recognition worker for longer than an assignment.
"""

import logging
import os
import threading

import cv2

logger = logging.getLogger(__name__)


class OutputSink:
    """Named output channel holding the most recently published value."""

    def __init__(self, name, callback=None):
        self.name = name
        self.callback = callback
        self._lock = threading.Lock()
        self._value = None
        self.publish_count = 0

    def publish(self, value):
        with self._lock:
            self._value = value
            self.publish_count += 1
        if self.callback is not None:
            self.callback(value)

    def latest(self):
        with self._lock:
            return self._value

    def clear(self):
        with self._lock:
            self._value = None


class TextSink(OutputSink):
    """Receives recognized text."""

    def publish(self, text):
        logger.debug(f"Text sink '{self.name}' <- '{text}'")
        super().publish(text)


class ImageSink(OutputSink):
    """
    Receives BGRA images. When save_path is set every published image is also
    written there so external image sources can pick it up.
    """

    def __init__(self, name, callback=None, save_path=None):
        super().__init__(name, callback)
        self.save_path = save_path

    def publish(self, image):
        image = image.copy()
        super().publish(image)
        if self.save_path:
            directory = os.path.dirname(self.save_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            if not cv2.imwrite(self.save_path, image):
                logger.warning(f"Failed to write image sink '{self.name}' to {self.save_path}")

    def latest(self):
        image = super().latest()
        return None if image is None else image.copy()
