import cv2
import asyncio
import logging
import sys
from camera_feed import VideoStream
from config import *  # Import configuration
from ocr_filter import OCRFilter

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_config():
    """Demo settings: Otsu binarization, text overlay output, binarization preview"""
    return PipelineConfig(
        binarization_mode=BinarizationMode.OTSU,
        dilation_iterations=0,
        output_image_enabled=True,
        output_image_option=ImageOutputMode.TEXT_BACKGROUND,
        preview_binarization=True,
    )


async def process_feed():
    logger.info("Starting process_feed function")

    ocr_filter = None
    stream = None

    try:
        logger.info("Initializing OCRFilter...")
        ocr_filter = OCRFilter(build_config())
        if not ocr_filter.initialize(hard_reset=True):
            logger.error("Failed to initialize OCR filter")
            return

        logger.info("Initializing VideoStream...")
        stream = VideoStream(ocr_filter.frame_buffer, CAMERA_SOURCE)
        if not stream.is_initialized():
            logger.error("Failed to initialize video stream")
            return

        while True:
            try:
                frame = ocr_filter.frame_buffer.try_snapshot()
                if frame is None:
                    await asyncio.sleep(DISPLAY_SLEEP_TIME)
                    continue

                text = ocr_filter.get_text()
                if text:
                    for i, line in enumerate(text.splitlines()[:5]):
                        cv2.putText(frame, line, (10, 30 + i * 25),
                                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, INFO_TEXT_COLOR, 2)

                cv2.imshow(WINDOW_TITLE, frame)

                detection = ocr_filter.get_detection_image()
                if detection is not None:
                    cv2.imshow(DETECTION_WINDOW_TITLE, detection)

                preview = ocr_filter.get_preview_image()
                if preview is not None:
                    cv2.imshow(PREVIEW_WINDOW_TITLE, preview)

                key = cv2.waitKey(1) & 0xFF
                if key == ord('q'):
                    logger.info("'q' key pressed, stopping stream")
                    break
                if key == ord('c'):
                    logger.info("'c' key pressed, clearing text output")
                    ocr_filter.text_sink.clear()

                # Async sleep to ensure video feed is not blocked
                await asyncio.sleep(DISPLAY_SLEEP_TIME)

            except KeyboardInterrupt:
                logger.info("Keyboard interrupt detected, stopping gracefully")
                break

    finally:
        logger.info("Cleaning up resources...")
        if stream:
            stream.stop()
        if ocr_filter:
            ocr_filter.destroy()
        cv2.destroyAllWindows()


if __name__ == "__main__":
    try:
        logger.info("Starting main application")
        logger.info("Following flow: Camera Feed → Frame Buffer → OCR Worker → Sinks")
        logger.info("Press 'q' to quit, 'c' to clear text output")
        asyncio.run(process_feed())
        logger.info("Application finished successfully")
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application crashed with error: {e}")
        sys.exit(1)
