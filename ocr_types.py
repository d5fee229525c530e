"""
Data classes shared by the recognition adapter, region post-processing and
the worker loop.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class PageIteratorLevel(Enum):
    """Granularity at which backend results are iterated."""
    WORD = "word"
    SYMBOL = "symbol"


@dataclass
class RecognitionResult:
    """Text recognized in one frame together with its mean confidence (0-100)."""
    text: str
    confidence: float

    @property
    def is_empty(self) -> bool:
        return not self.text


@dataclass
class BackendRegion:
    """Raw sub-region reported by the backend, in OCR image coordinates."""
    text: str
    confidence: float
    left: int
    top: int
    right: int
    bottom: int

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() or self.right <= self.left or self.bottom <= self.top


@dataclass
class Region:
    """A detected text region in frame coordinates."""
    x: int
    y: int
    width: int
    height: int
    text: str
    confidence: float

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height

    @classmethod
    def from_backend(cls, region: BackendRegion, scale: float = 1.0) -> "Region":
        """Map a backend region back to frame coordinates given the applied rescale factor."""
        inv = 1.0 / scale if scale else 1.0
        left = int(round(region.left * inv))
        top = int(round(region.top * inv))
        right = int(round(region.right * inv))
        bottom = int(round(region.bottom * inv))
        return cls(left, top, right - left, bottom - top, region.text, region.confidence)
