import cv2
import logging
import threading
import time

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FrameBuffer:
    """
    Shared slot between a frame producer and the recognition worker.
    The producer blocks on the lock; the worker only ever tries it.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.frame = None

    def put(self, frame):
        """Store the latest BGRA frame (producer side)"""
        with self.lock:
            self.frame = frame

    def try_snapshot(self):
        """
        Return a private copy of the latest frame, or None if the producer
        currently holds the lock or nothing was produced yet.
        """
        if not self.lock.acquire(blocking=False):
            return None
        try:
            if self.frame is None:
                return None
            return self.frame.copy()
        finally:
            self.lock.release()

    def clear(self):
        with self.lock:
            self.frame = None


class VideoStream:
    def __init__(self, frame_buffer, src=0, max_consecutive_failures=30):
        logger.info(f"Initializing VideoStream with source: {src}")
        self.src = src
        self.frame_buffer = frame_buffer
        self.max_consecutive_failures = max_consecutive_failures
        self.cap = None
        self.stopped = False
        self.thread = None
        self.initialization_successful = False

        try:
            self.cap = cv2.VideoCapture(src)
            if not self.cap.isOpened():
                logger.error(f"Failed to open camera source {src}")
                return

            ret, frame = self.cap.read()
            if not ret or frame is None:
                logger.error("Failed to read initial frame from camera")
                return

            logger.info(f"Camera resolution: {frame.shape[1]}x{frame.shape[0]}")
            self.frame_buffer.put(cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA))

            logger.info("Starting background thread for frame updates")
            self.thread = threading.Thread(target=self.update, args=(), daemon=True)
            self.thread.start()
            self.initialization_successful = True
            logger.info("VideoStream initialization completed successfully")

        except Exception as e:
            logger.error(f"Error during VideoStream initialization: {e}")
            self.cleanup()

    def is_initialized(self):
        """Check if the video stream was initialized successfully"""
        return self.initialization_successful and self.cap is not None and self.cap.isOpened()

    def update(self):
        """Read frames from the camera and publish them into the shared buffer"""
        logger.info("Background update thread started")
        frame_count = 0
        consecutive_failures = 0

        while not self.stopped:
            try:
                if self.cap is None or not self.cap.isOpened():
                    logger.error("Camera not available in background thread")
                    break

                ret, frame = self.cap.read()
                if ret and frame is not None:
                    self.frame_buffer.put(cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA))
                    consecutive_failures = 0
                    frame_count += 1

                    if frame_count % 300 == 0:
                        logger.debug(f"Background thread: Read {frame_count} frames")
                else:
                    consecutive_failures += 1
                    logger.warning(f"Background thread: Failed to read frame (attempt {consecutive_failures}/{self.max_consecutive_failures})")

                    if consecutive_failures >= self.max_consecutive_failures:
                        logger.error("Too many consecutive failures in background thread, stopping")
                        break

                    time.sleep(0.01)

            except Exception as e:
                logger.error(f"Error in background update thread: {e}")
                consecutive_failures += 1
                if consecutive_failures >= self.max_consecutive_failures:
                    logger.error("Too many errors in background thread, stopping")
                    break
                time.sleep(0.01)

        logger.info("Background update thread stopped")

    def stop(self):
        """Stop the video stream and release camera"""
        logger.info("Stopping video stream")
        self.stopped = True

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)
            if self.thread.is_alive():
                logger.warning("Background thread did not finish gracefully")

        self.cleanup()

    def cleanup(self):
        """Release the capture device"""
        try:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
                logger.info("Camera released successfully")
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")
