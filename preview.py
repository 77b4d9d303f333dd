"""
Turns simulator grids into RGB pixels and Pillow images.
"""

import numpy as np
from PIL import Image

from placement import RandomPlacementSource
from sparkles import EMPTY, SparkleSimulator


def grid_to_rgb(grid):
    """Convert an (H, W) grid of packed RGB ints to an (H, W, 3) uint8 array."""
    packed = np.where(grid == EMPTY, 0, grid).astype(np.uint32)
    rgb = np.empty(grid.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = (packed >> 16) & 0xFF
    rgb[..., 1] = (packed >> 8) & 0xFF
    rgb[..., 2] = packed & 0xFF
    return rgb


def grid_to_image(grid, scale=1):
    """Render a grid as an RGB image, upscaled with hard pixel edges."""
    image = Image.fromarray(grid_to_rgb(grid))
    if scale != 1:
        width, height = image.size
        image = image.resize((width * scale, height * scale), Image.NEAREST)
    return image


def preset_grid(preset):
    """One deterministic frame for a preset, seeded by its id."""
    simulator = SparkleSimulator(source=RandomPlacementSource.seeded(preset.id))
    simulator.start(preset.configuration)
    return simulator.grid


def preset_thumbnail(preset, scale=1):
    return grid_to_image(preset_grid(preset), scale)


class ThumbnailCache:
    """Rendered preset thumbnails keyed by preset id."""

    def __init__(self, render=preset_thumbnail):
        self.render = render
        self._images = {}

    def __len__(self):
        return len(self._images)

    def __contains__(self, preset_id):
        return preset_id in self._images

    def get(self, preset):
        if preset.id not in self._images:
            self._images[preset.id] = self.render(preset)
        return self._images[preset.id]

    def retain(self, presets):
        """Forget thumbnails of presets that are no longer listed."""
        keep = {preset.id for preset in presets}
        for preset_id in list(self._images):
            if preset_id not in keep:
                del self._images[preset_id]
