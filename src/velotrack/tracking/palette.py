from __future__ import annotations

import random
from typing import Optional, Sequence, Tuple

DEFAULT_PALETTE: Tuple[str, ...] = ("#00f0ff", "#ff2a6d", "#05d5fa", "#39ff14", "#ffe600", "#bd00ff")


class ColorPalette:
    """
    Cosmetic colour source for new tracks.
    Owns its RNG so colour draws never touch the global random state.
    """

    def __init__(self, colors: Sequence[str] = DEFAULT_PALETTE, rng: Optional[random.Random] = None):
        if not colors:
            raise ValueError("Palette must contain at least one colour")
        self.colors = tuple(colors)
        self.rng = rng or random.Random()

    def pick(self) -> str:
        return self.rng.choice(self.colors)
