"""Round-robin display color allocation."""
from typing import Sequence

# Fixed palette; the Nth join since process start gets USER_COLORS[(N - 1) % 12]
USER_COLORS = (
    "#6ee7b7", "#93c5fd", "#fca5a5", "#fcd34d",
    "#c4b5fd", "#f9a8d4", "#67e8f9", "#fdba74",
    "#a5b4fc", "#86efac", "#fda4af", "#d8b4fe",
)


class ColorAllocator:
    """Hands out palette colors in join order.

    Allocation is purely time-ordered: colors are never freed on disconnect,
    so two people online at the same time may share a color once the palette
    wraps.
    """

    def __init__(self, palette: Sequence[str] = USER_COLORS) -> None:
        if not palette:
            raise ValueError("palette must not be empty")
        self._palette = tuple(palette)
        self._counter = 0

    @property
    def allocated(self) -> int:
        """Number of colors handed out so far."""
        return self._counter

    def next(self) -> str:
        color = self._palette[self._counter % len(self._palette)]
        self._counter += 1
        return color
