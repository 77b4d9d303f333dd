import numpy as np

import config
from conftest import make_config
from models import Preset
from preview import ThumbnailCache, grid_to_image, grid_to_rgb, preset_grid, preset_thumbnail
from sparkles import EMPTY, empty_grid


def test_grid_to_rgb_unpacks_colors():
    grid = np.array([[EMPTY, 0xFF8000], [0x0000FF, 0xFFFFFF]], dtype=np.int32)
    rgb = grid_to_rgb(grid)
    assert rgb.dtype == np.uint8
    assert rgb[0, 0].tolist() == [0, 0, 0]
    assert rgb[0, 1].tolist() == [255, 128, 0]
    assert rgb[1, 0].tolist() == [0, 0, 255]
    assert rgb[1, 1].tolist() == [255, 255, 255]


def test_grid_to_image_scales_with_hard_edges():
    grid = empty_grid()
    grid[0, 0] = config.PALETTE[0]
    image = grid_to_image(grid, scale=3)
    assert image.size == (config.MATRIX_WIDTH * 3, config.MATRIX_HEIGHT * 3)
    assert image.getpixel((2, 2)) == (255, 0, 0)
    assert image.getpixel((3, 3)) == (0, 0, 0)


def test_thumbnail_is_stable_per_preset():
    preset = Preset(1_700_000_000_000, "Night", make_config(colors=(5, 6), num_sparkles=40))
    first = preset_thumbnail(preset)
    again = preset_thumbnail(preset)
    assert first.size == (config.MATRIX_WIDTH, config.MATRIX_HEIGHT)
    assert first.tobytes() == again.tobytes()

    other = Preset(preset.id + 1, "Night", preset.configuration)
    assert not np.array_equal(preset_grid(preset), preset_grid(other))


def test_thumbnail_uses_only_preset_colors():
    preset = Preset(7, "Gold", make_config(colors=(11,), num_sparkles=30))
    colors = set(np.unique(preset_grid(preset))) - {EMPTY}
    assert colors == {config.PALETTE[11]}


def test_thumbnail_cache_renders_once_and_prunes():
    rendered = []

    def render(preset):
        rendered.append(preset.id)
        return preset_thumbnail(preset)

    cache = ThumbnailCache(render)
    night = Preset(1, "Night", make_config(colors=(5,)))
    gold = Preset(2, "Gold", make_config(colors=(11,)))
    assert cache.get(night) is cache.get(night)
    cache.get(gold)
    assert rendered == [1, 2]

    cache.retain((gold,))
    assert len(cache) == 1
    assert 1 not in cache and 2 in cache
