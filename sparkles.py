"""
Sparkle animation for the matrix preview.

Each tick every sparkle jumps to a new random spot with a new random color
(a twinkle, not a drift) and the grid is repainted from scratch.
"""

import logging

import numpy as np

import config
from placement import RandomPlacementSource

logger = logging.getLogger("sparkle_matrix.sparkles")

EMPTY = -1  # grid value of an unlit cell


def effective_interval(speed, num_sparkles, sparkle_size):
    """
    Tick interval (ms) actually used for the preview.

    Dense or large configurations are slowed down so they don't strobe at
    fast speeds. Monotonic in both num_sparkles and sparkle_size, clamped to
    [MIN_TICK_MS, MAX_TICK_MS].
    """
    n = max(num_sparkles, 1)
    s = max(sparkle_size, 1)
    dampening = 1 + (n ** 0.1 * s ** 0.1) / 1.5
    interval = max(speed, 1) * dampening
    return min(max(interval, config.MIN_TICK_MS), config.MAX_TICK_MS)


def empty_grid(width=config.MATRIX_WIDTH, height=config.MATRIX_HEIGHT):
    return np.full((height, width), EMPTY, dtype=np.int32)


class Sparkle:
    """One particle: origin of its square and a palette index."""

    __slots__ = ("x", "y", "color_index")

    def __init__(self, x, y, color_index):
        self.x = x
        self.y = y
        self.color_index = color_index

    def relocate(self, source, active_colors, size):
        self.x, self.y = source.position(size)
        self.color_index = source.color_index(active_colors)

    def __repr__(self):
        return f"Sparkle(x={self.x}, y={self.y}, color_index={self.color_index})"


class SimulationHandle:
    """Identifies one start() of the simulator."""

    __slots__ = ("generation",)

    def __init__(self, generation):
        self.generation = generation

    def __eq__(self, other):
        return isinstance(other, SimulationHandle) and other.generation == self.generation

    def __hash__(self):
        return hash(self.generation)

    def __repr__(self):
        return f"SimulationHandle({self.generation})"


class SparkleSimulator:
    """
    Owns the sparkle set and the grid it paints.

    With a scheduler, start() keeps a ticker running at the effective
    interval; without one the simulator only advances when tick() is called.
    on_frame(grid) is called with every freshly painted grid.
    """

    def __init__(self, source=None, scheduler=None, on_frame=None,
                 width=config.MATRIX_WIDTH, height=config.MATRIX_HEIGHT,
                 palette=config.PALETTE):
        self.width = width
        self.height = height
        self.palette = np.asarray(palette, dtype=np.int32)
        self.source = source if source is not None else RandomPlacementSource(width, height)
        self.scheduler = scheduler
        self.on_frame = on_frame

        self.configuration = None
        self.sparkles = []
        self.grid = empty_grid(width, height)
        self.paint_count = 0
        self.interval_ms = None

        self._generation = 0
        self._running = False
        self._timer = None

    # ===== Lifecycle =====

    def start(self, configuration):
        """
        (Re)start the animation with a fresh sparkle set.

        Any running ticker is cancelled first; the first frame is painted and
        published before this returns.
        """
        self._cancel_timer()
        self._generation += 1
        self.configuration = configuration
        size = configuration.sparkle_size

        self.sparkles = []
        for _ in range(max(configuration.num_sparkles, 0)):
            x, y = self.source.position(size)
            self.sparkles.append(
                Sparkle(x, y, self.source.color_index(configuration.active_colors))
            )

        self.interval_ms = effective_interval(
            configuration.speed, configuration.num_sparkles, size
        )
        logger.debug(
            f"[Sim] Start #{self._generation}: {len(self.sparkles)} sparkles, "
            f"size {size}, tick {self.interval_ms:.1f} ms"
        )

        self._running = True
        self._publish(self._paint())
        self._schedule_next()
        return SimulationHandle(self._generation)

    def stop(self, handle=None):
        """Stop the ticker. A handle from an earlier start() is ignored."""
        if handle is not None and handle.generation != self._generation:
            return
        self._running = False
        self._cancel_timer()

    @property
    def running(self):
        return self._running

    # ===== Frames =====

    def tick(self):
        """Relocate and recolor every sparkle, then repaint the grid."""
        if self.configuration is None:
            return self.grid
        active = self.configuration.active_colors
        size = self.configuration.sparkle_size
        for sparkle in self.sparkles:
            sparkle.relocate(self.source, active, size)
        grid = self._paint()
        self._publish(grid)
        return grid

    def _paint(self):
        grid = empty_grid(self.width, self.height)
        size = self.configuration.sparkle_size
        painted = 0
        for sparkle in self.sparkles:
            # Later sparkles overwrite earlier ones; slices clip at the edges.
            grid[sparkle.y:sparkle.y + size, sparkle.x:sparkle.x + size] = \
                self.palette[sparkle.color_index % len(self.palette)]
            painted += 1
        self.paint_count = painted
        grid.flags.writeable = False
        return grid

    def _publish(self, grid):
        self.grid = grid
        if self.on_frame is not None:
            self.on_frame(grid)

    # ===== Ticker =====

    def _schedule_next(self):
        if self.scheduler is None or not self._running:
            return
        generation = self._generation
        self._timer = self.scheduler.call_later(
            self.interval_ms, lambda: self._on_timer(generation)
        )

    def _on_timer(self, generation):
        self._timer = None
        if generation != self._generation or not self._running:
            return
        self.tick()
        self._schedule_next()

    def _cancel_timer(self):
        if self._timer is not None and self.scheduler is not None:
            self.scheduler.cancel(self._timer)
        self._timer = None
