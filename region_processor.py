import logging
from functools import lru_cache

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from config import MIN_REGION_AREA, ImageOutputMode
from ocr_types import PageIteratorLevel, Region

logger = logging.getLogger(__name__)

MASK_BACKGROUND = (0, 0, 0, 255)
MASK_FOREGROUND = (255, 255, 255, 255)
OVERLAY_TEXT_COLOR = (255, 255, 255, 255)
OVERLAY_BACKGROUND_COLOR = (0, 0, 0, 255)
OVERLAY_FONT = "DejaVuSans.ttf"


def is_area_in_range(area, image_width, image_height, min_area=MIN_REGION_AREA):
    """Regions must cover at least min_area pixels and at most half the image."""
    return min_area <= area <= (image_width * image_height) // 2


def filter_regions(regions, image_width, image_height, conf_threshold, level=PageIteratorLevel.WORD):
    """
    Drop regions that are empty, outside the accepted area range or, at word
    level, below the confidence threshold.
    """
    kept = []
    for region in regions:
        if not region.text.strip() or region.width <= 0 or region.height <= 0:
            continue
        if level == PageIteratorLevel.WORD and int(region.confidence) < conf_threshold:
            logger.debug(f"Dropping low confidence region '{region.text}' ({region.confidence:.1f})")
            continue
        if not is_area_in_range(region.area, image_width, image_height):
            logger.debug(f"Dropping region '{region.text}' with area {region.area}")
            continue
        kept.append(region)
    return kept


def render_detection_mask(regions, width, height):
    """Opaque black BGRA canvas with a filled white rectangle per region."""
    mask = np.zeros((height, width, 4), dtype=np.uint8)
    mask[:] = MASK_BACKGROUND
    for region in regions:
        cv2.rectangle(
            mask,
            (region.x, region.y),
            (region.x + region.width - 1, region.y + region.height - 1),
            MASK_FOREGROUND,
            -1,
        )
    return mask


@lru_cache(maxsize=32)
def _load_font(size):
    try:
        return ImageFont.truetype(OVERLAY_FONT, size)
    except OSError:
        return ImageFont.load_default()


def render_text_overlay(regions, width, height, background=False):
    """
    Render each region's text at its rectangle on a transparent canvas.

    Args:
        regions: Regions in canvas coordinates
        width, height: Canvas size
        background: Fill each rectangle behind the glyphs

    Returns:
        BGRA numpy array of shape (height, width, 4)
    """
    canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(canvas)

    for region in regions:
        x1, y1 = region.x, region.y
        x2, y2 = region.x + region.width - 1, region.y + region.height - 1
        if background:
            draw.rectangle([x1, y1, x2, y2], fill=OVERLAY_BACKGROUND_COLOR)
        font = _load_font(max(8, int(region.height * 0.8)))
        draw.text((x1, y1), region.text, font=font, fill=OVERLAY_TEXT_COLOR)

    return cv2.cvtColor(np.array(canvas), cv2.COLOR_RGBA2BGRA)


def compose_detection_output(regions, width, height, option, overlay_renderer=render_text_overlay):
    """Build the image published to the detection image sink."""
    if option == ImageOutputMode.DETECTION_MASK:
        return render_detection_mask(regions, width, height)

    rendered = overlay_renderer(
        regions, width, height, option == ImageOutputMode.TEXT_BACKGROUND
    )
    if rendered.shape[:2] != (height, width):
        rendered = cv2.resize(rendered, (width, height))
    return rendered
