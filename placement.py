"""
Random sparkle placement.

The live preview and the preset thumbnails each own their own source: the
animation runs unseeded, thumbnails are seeded by preset id so the same
preset always draws the same picture.
"""

import random

import config


class RandomPlacementSource:
    """Picks in-bounds sparkle origins and palette indices."""

    def __init__(self, width=config.MATRIX_WIDTH, height=config.MATRIX_HEIGHT,
                 rng=None, palette_size=len(config.PALETTE)):
        self.width = width
        self.height = height
        self.palette_size = palette_size
        self.rng = rng if rng is not None else random.Random()

    @classmethod
    def seeded(cls, seed, width=config.MATRIX_WIDTH, height=config.MATRIX_HEIGHT):
        """Deterministic source, used for preset thumbnails."""
        return cls(width, height, rng=random.Random(seed))

    def _axis(self, extent, size):
        span = extent - size
        if span <= 0:
            # Sparkle covers the whole axis: only one valid origin
            return 0
        return self.rng.randrange(span)

    def position(self, size):
        """Uniform origin in [0, width - size) x [0, height - size)."""
        return self._axis(self.width, size), self._axis(self.height, size)

    def color_index(self, active_colors):
        """Uniform among active palette entries, or the whole palette if none are."""
        active = [i for i, on in enumerate(active_colors) if on]
        if not active:
            return self.rng.randrange(self.palette_size)
        return self.rng.choice(active)
