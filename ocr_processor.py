import cv2
import logging
import shlex
import pytesseract
from PIL import Image

from config import OCR_ENGINE_MODE, PSM_SINGLE_CHAR
from ocr_types import BackendRegion, PageIteratorLevel, RecognitionResult, Region
from region_processor import filter_regions

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

WORD_LEVEL = 5  # image_to_data row level for words


class BackendInitError(RuntimeError):
    """Raised when the OCR backend cannot be loaded."""


def to_pil_image(image):
    """Convert an OpenCV BGRA/BGR/gray buffer to a PIL image Tesseract understands"""
    if image.ndim == 2:
        return Image.fromarray(image)
    if image.shape[2] == 4:
        return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


class TesseractBackend:
    """
    Tesseract engine driven through pytesseract.

    run() recognizes one image and keeps the result so iterate() can walk its
    regions afterwards, mirroring how Tesseract's own API is used.
    """

    def __init__(self, language="eng", tessdata_path=None, init_configs=None):
        logger.info(f"Initializing Tesseract backend (language: {language}, tessdata: {tessdata_path})")
        self.language = language
        self.tessdata_path = tessdata_path
        self.init_configs = list(init_configs or [])
        self.page_segmentation_mode = 6
        self.char_whitelist = ""
        self._last_image = None
        self._last_data = None
        self._last_confidence = 0.0

        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract {version} is available")
        except Exception as e:
            raise BackendInitError(f"Tesseract is not available: {e}") from e

        try:
            languages = pytesseract.get_languages(config=self._tessdata_option())
        except Exception as e:
            raise BackendInitError(f"Failed to list Tesseract languages: {e}") from e

        missing = [lang for lang in language.split("+") if lang not in languages]
        if missing:
            raise BackendInitError(f"Tesseract language data not found: {', '.join(missing)}")

        logger.info("Tesseract backend initialized successfully")

    def _tessdata_option(self):
        if not self.tessdata_path:
            return ""
        return f"--tessdata-dir {shlex.quote(self.tessdata_path)}"

    def configure(self, page_segmentation_mode, char_whitelist=""):
        """Settings that apply without reloading the engine"""
        self.page_segmentation_mode = int(page_segmentation_mode)
        self.char_whitelist = char_whitelist or ""

    def build_config(self):
        parts = [f"--oem {OCR_ENGINE_MODE}", f"--psm {self.page_segmentation_mode}"]
        tessdata = self._tessdata_option()
        if tessdata:
            parts.append(tessdata)
        if self.char_whitelist:
            parts.append(f"-c {shlex.quote('tessedit_char_whitelist=' + self.char_whitelist)}")
        # Config files are positional and must come last
        parts.extend(shlex.quote(path) for path in self.init_configs)
        return " ".join(parts)

    def run(self, image):
        """
        Recognize text in image.

        Returns:
            (text, mean word confidence on the 0-100 scale)
        """
        pil_image = to_pil_image(image)
        data = pytesseract.image_to_data(
            pil_image,
            lang=self.language,
            config=self.build_config(),
            output_type=pytesseract.Output.DICT,
        )
        self._last_image = pil_image
        self._last_data = data

        lines = {}
        confidences = []
        for i, level in enumerate(data["level"]):
            if int(level) != WORD_LEVEL:
                continue
            word = str(data["text"][i]).strip()
            confidence = float(data["conf"][i])
            if not word or confidence < 0:
                continue
            confidences.append(confidence)
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)

        text = "\n".join(" ".join(words) for words in lines.values())
        self._last_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, self._last_confidence

    def iterate(self, level):
        """Yield BackendRegions of the last recognized image at the given level"""
        if self._last_data is None:
            return
        if level == PageIteratorLevel.SYMBOL:
            yield from self._iterate_symbols()
            return

        data = self._last_data
        for i, row_level in enumerate(data["level"]):
            if int(row_level) != WORD_LEVEL:
                continue
            left, top = int(data["left"][i]), int(data["top"][i])
            yield BackendRegion(
                text=str(data["text"][i]),
                confidence=float(data["conf"][i]),
                left=left,
                top=top,
                right=left + int(data["width"][i]),
                bottom=top + int(data["height"][i]),
            )

    def _iterate_symbols(self):
        boxes = pytesseract.image_to_boxes(
            self._last_image,
            lang=self.language,
            config=self.build_config(),
            output_type=pytesseract.Output.DICT,
        )
        image_height = self._last_image.height
        for i, char in enumerate(boxes.get("char", [])):
            # Box coordinates have their origin at the bottom-left corner
            yield BackendRegion(
                text=str(char),
                confidence=self._last_confidence,
                left=int(boxes["left"][i]),
                top=image_height - int(boxes["top"][i]),
                right=int(boxes["right"][i]),
                bottom=image_height - int(boxes["bottom"][i]),
            )

    def end(self):
        logger.info("Releasing Tesseract backend")
        self._last_image = None
        self._last_data = None


class RecognitionAdapter:
    """
    Applies the pipeline's confidence and geometry rules on top of a backend.
    """

    def __init__(self, backend, conf_threshold=50, page_segmentation_mode=6, char_whitelist=""):
        self.backend = backend
        self.configure(conf_threshold, page_segmentation_mode, char_whitelist)

    def configure(self, conf_threshold, page_segmentation_mode, char_whitelist=""):
        self.conf_threshold = conf_threshold
        self.page_segmentation_mode = page_segmentation_mode
        self.backend.configure(page_segmentation_mode, char_whitelist)

    def recognize(self, image):
        """
        Run the backend on image. Text below the confidence threshold is
        discarded; the regions of the run stay available to detect_regions.
        """
        text, confidence = self.backend.run(image)
        if text is None or confidence < self.conf_threshold:
            logger.debug(f"Discarding recognition with confidence {confidence:.1f} < {self.conf_threshold}")
            return RecognitionResult("", confidence)
        return RecognitionResult(text.strip(), confidence)

    def detect_regions(self, image, page_mode=None, scale=1.0):
        """
        Regions of the last recognize() call, in the coordinates of image.

        Args:
            image: Frame the regions are reported against (its size bounds the area filter)
            page_mode: Page segmentation mode; single character iterates symbols
            scale: Factor the recognized image was rescaled by relative to image
        """
        if page_mode is None:
            page_mode = self.page_segmentation_mode
        level = PageIteratorLevel.SYMBOL if page_mode == PSM_SINGLE_CHAR else PageIteratorLevel.WORD

        height, width = image.shape[:2]
        regions = [
            Region.from_backend(region, scale)
            for region in self.backend.iterate(level)
            if not region.is_empty
        ]
        return filter_regions(regions, width, height, self.conf_threshold, level)
