"""
Temporal smoothing for fixed-format OCR readings (scoreboards, clocks).
"""

from collections import Counter, deque


class CharacterBasedSmoothingFilter:
    """
    Per-character majority vote over the last window_size readings.

    Every reading is forced to word_length characters, then each character
    position votes independently. When several characters share the highest
    count, the one that entered the window first wins.
    """

    def __init__(self, word_length: int, window_size: int):
        if word_length < 0:
            raise ValueError(f"word_length must be >= 0, got {word_length}")
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.word_length = word_length
        self.window_size = window_size
        self.readings = [deque(maxlen=window_size) for _ in range(word_length)]

    def normalize(self, word: str) -> str:
        """Truncate or right-pad with spaces to exactly word_length characters."""
        return word[:self.word_length].ljust(self.word_length)

    def add_reading(self, word: str) -> str:
        word = self.normalize(word)
        smoothed = []
        for window, char in zip(self.readings, word):
            window.append(char)
            smoothed.append(self._most_common(window))
        return "".join(smoothed)

    @staticmethod
    def _most_common(window) -> str:
        counts = Counter(window)
        best_char, best_count = None, 0
        # Oldest first, strictly greater keeps the earliest among ties
        for char in window:
            if counts[char] > best_count:
                best_char, best_count = char, counts[char]
        return best_char
