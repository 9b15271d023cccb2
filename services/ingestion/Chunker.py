class Chunker:
    """Splits text into overlapping fixed-size windows.

    Window ``i`` starts at ``i * (size - overlap)`` and is at most ``size``
    characters long; no window starts at or past the end of the text. With
    ``overlap < size`` every character lands in at least one window.
    """

    def __init__(self, size: int = 1000, overlap: int = 100) -> None:
        if size <= 0:
            raise ValueError(f"Chunk size must be positive, got {size}.")
        if overlap < 0:
            raise ValueError(f"Chunk overlap must not be negative, got {overlap}.")
        if overlap >= size:
            raise ValueError(f"Chunk overlap ({overlap}) must be smaller than chunk size ({size}).")
        self.size = size
        self.overlap = overlap

    @property
    def stride(self) -> int:
        return self.size - self.overlap

    def split(self, text: str) -> list[str]:
        """Split text into ordered windows.

        Args:
            text (str): The full item text.

        Returns:
            list[str]: Windows in document order. Blank windows are kept so the
                list index equals the window index.
        """
        return [text[start:start + self.size] for start in range(0, len(text), self.stride)]
