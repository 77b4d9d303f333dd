"""
Value types shared by the simulator, the preset store and the reconciler.

Configuration is the unit of comparison everywhere: two configurations
"match" when they light the same set of palette colors and agree on the
three integer parameters.
"""

import logging
from dataclasses import dataclass, replace
from typing import FrozenSet, Optional, Tuple

import config

logger = logging.getLogger("sparkle_matrix.models")

# Slider fields and their (min, max) domains
VALUE_FIELDS = {
    "num_sparkles": (config.NUM_SPARKLES_MIN, config.NUM_SPARKLES_MAX),
    "sparkle_size": (config.SPARKLE_SIZE_MIN, config.SPARKLE_SIZE_MAX),
    "speed": (config.SPEED_MIN, config.SPEED_MAX),
}


class InvalidConfiguration(ValueError):
    """Raised when a stored or received record cannot be read as a Configuration."""


def _require_int(data, key):
    value = data.get(key) if isinstance(data, dict) else None
    # bool is an int subclass; a JSON true is not a sparkle count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{key!r} must be an integer, got {value!r}")
    return value


def clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True)
class Configuration:
    active_colors: Tuple[bool, ...]
    num_sparkles: int
    sparkle_size: int
    speed: int

    def __post_init__(self):
        # Lists sneak in from JSON; keep the value hashable.
        object.__setattr__(self, "active_colors", tuple(bool(a) for a in self.active_colors))

    @classmethod
    def default(cls) -> "Configuration":
        colors = [False] * len(config.PALETTE)
        colors[0] = True
        return cls(
            active_colors=tuple(colors),
            num_sparkles=config.DEFAULT_NUM_SPARKLES,
            sparkle_size=config.DEFAULT_SPARKLE_SIZE,
            speed=config.DEFAULT_SPEED,
        )

    # ===== Editing =====

    def toggle_color(self, index: int) -> "Configuration":
        """
        Flip one palette entry.

        Switching off the only active color re-activates it, so an edit can
        never produce a configuration without colors.
        """
        if not 0 <= index < len(self.active_colors):
            raise IndexError(f"color index {index} out of range")
        colors = list(self.active_colors)
        colors[index] = not colors[index]
        if not any(colors):
            colors[index] = True
        return replace(self, active_colors=tuple(colors))

    def with_value(self, field: str, value: int) -> "Configuration":
        """Return a copy with one slider field set, clamped to its domain."""
        if field not in VALUE_FIELDS:
            raise KeyError(f"unknown configuration field {field!r}")
        low, high = VALUE_FIELDS[field]
        return replace(self, **{field: clamp(int(value), low, high)})

    # ===== Comparison =====

    @property
    def active_indices(self) -> Tuple[int, ...]:
        return tuple(i for i, active in enumerate(self.active_colors) if active)

    def color_set(self) -> FrozenSet[int]:
        return frozenset(config.PALETTE[i] for i in self.active_indices)

    def matches(self, other: Optional["Configuration"]) -> bool:
        """Order-independent comparison: same color set, same three integers."""
        if other is None:
            return False
        return (
            self.color_set() == other.color_set()
            and self.num_sparkles == other.num_sparkles
            and self.sparkle_size == other.sparkle_size
            and self.speed == other.speed
        )

    # ===== Device wire format =====

    def to_wire(self) -> dict:
        return {
            "colors": [config.PALETTE[i] for i in self.active_indices],
            "num_sparkles": self.num_sparkles,
            "sparkle_size": self.sparkle_size,
            "speed": self.speed,
        }

    @classmethod
    def from_wire(cls, data) -> "Configuration":
        """
        Decode a device settings payload.

        Colors are matched against the palette by membership; values that
        are not palette entries are dropped.
        """
        if not isinstance(data, dict):
            raise InvalidConfiguration(f"expected an object, got {type(data).__name__}")
        colors = data.get("colors")
        if not isinstance(colors, list):
            raise InvalidConfiguration(f"'colors' must be a list, got {colors!r}")

        wire_colors = set()
        for color in colors:
            if isinstance(color, bool) or not isinstance(color, int):
                raise InvalidConfiguration(f"color {color!r} is not an integer")
            wire_colors.add(color)

        unknown = wire_colors.difference(config.PALETTE)
        if unknown:
            logger.warning(
                "[Models] Ignoring colors outside the palette: "
                + ", ".join(f"#{c:06x}" for c in sorted(unknown))
            )

        return cls(
            active_colors=tuple(c in wire_colors for c in config.PALETTE),
            num_sparkles=_require_int(data, "num_sparkles"),
            sparkle_size=_require_int(data, "sparkle_size"),
            speed=_require_int(data, "speed"),
        )

    # ===== Storage record format =====

    def to_record(self) -> dict:
        return {
            "activeColors": list(self.active_colors),
            "numSparkles": self.num_sparkles,
            "sparkleSize": self.sparkle_size,
            "speed": self.speed,
        }

    @classmethod
    def from_record(cls, record) -> "Configuration":
        if not isinstance(record, dict):
            raise InvalidConfiguration(f"expected an object, got {type(record).__name__}")
        colors = record.get("activeColors")
        if not isinstance(colors, list) or len(colors) != len(config.PALETTE):
            raise InvalidConfiguration(
                f"'activeColors' must list {len(config.PALETTE)} flags, got {colors!r}"
            )
        return cls(
            active_colors=tuple(bool(c) for c in colors),
            num_sparkles=_require_int(record, "numSparkles"),
            sparkle_size=_require_int(record, "sparkleSize"),
            speed=_require_int(record, "speed"),
        )


@dataclass(frozen=True)
class Preset:
    id: int
    name: str
    configuration: Configuration

    def to_record(self) -> dict:
        record = {"id": self.id, "name": self.name}
        record.update(self.configuration.to_record())
        return record

    @classmethod
    def from_record(cls, record) -> "Preset":
        configuration = Configuration.from_record(record)
        preset_id = record.get("id")
        if isinstance(preset_id, bool) or not isinstance(preset_id, int):
            raise InvalidConfiguration(f"preset id must be an integer, got {preset_id!r}")
        name = record.get("name")
        if not isinstance(name, str):
            raise InvalidConfiguration(f"preset name must be a string, got {name!r}")
        return cls(id=preset_id, name=name, configuration=configuration)


@dataclass(frozen=True)
class Suggestion:
    """A generated preset proposal from the device's /api/generate endpoint."""

    theme: str
    configuration: Configuration

    @classmethod
    def from_wire(cls, data) -> "Suggestion":
        configuration = Configuration.from_wire(data)
        theme = data.get("theme")
        if not isinstance(theme, str) or not theme.strip():
            raise InvalidConfiguration(f"'theme' must be a non-empty string, got {theme!r}")
        return cls(theme=theme.strip(), configuration=configuration)
