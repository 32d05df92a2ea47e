"""Portal discovery, teleports and per-position cooldowns.

Cooldown maps are plain dicts keyed by the integer encoding of a
coordinate. Every helper returns a new dict and leaves its input alone.
"""

from typing import Dict, Iterable, List
from .types import Grid, Coord
from ..utils.rng import RandomSource

PortalCooldowns = Dict[int, int]

DEFAULT_COOLDOWN_STEPS = 4

_KEY_SHIFT = 16
_KEY_MASK = (1 << _KEY_SHIFT) - 1


def find_portals(grid: Grid) -> List[Coord]:
    """All portal positions in row-major order."""
    return [coord for coord in grid.coords() if grid.get_tile(coord).type == "portal"]


def teleport(grid: Grid, current: Coord, rng: RandomSource) -> Coord:
    """Pick a random portal other than ``current``; no-op if there is none."""
    portals = find_portals(grid)
    if len(portals) < 2:
        return current

    others = [p for p in portals if p != current]
    if not others:
        return current

    return rng.choice(others)


def cooldown_key(pos: Coord) -> int:
    """Compact integer key for a position (grids up to 65536 wide)."""
    x, y = pos
    return (y << _KEY_SHIFT) | x


def key_to_coord(key: int) -> Coord:
    """Inverse of ``cooldown_key``."""
    return (key & _KEY_MASK, key >> _KEY_SHIFT)


def decrement_all(cooldowns: PortalCooldowns) -> PortalCooldowns:
    """Count every cooldown down by one step, dropping the ones that expire."""
    return {key: value - 1 for key, value in cooldowns.items() if value > 1}


def with_cooldowns(cooldowns: PortalCooldowns, positions: Iterable[Coord],
                   duration: int = DEFAULT_COOLDOWN_STEPS) -> PortalCooldowns:
    """Set ``duration`` for each position, overwriting existing entries."""
    updated = dict(cooldowns)
    if duration <= 0:
        # non-positive entries are never stored
        for pos in positions:
            updated.pop(cooldown_key(pos), None)
        return updated

    for pos in positions:
        updated[cooldown_key(pos)] = duration
    return updated


def is_on_cooldown(cooldowns: PortalCooldowns, pos: Coord) -> bool:
    """Check if the portal at ``pos`` is still cooling down."""
    value = cooldowns.get(cooldown_key(pos))
    return isinstance(value, int) and value > 0
