"""Species interaction table and global simulation settings."""
from __future__ import annotations

import json
import os
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

Color = Tuple[float, float, float, float]


def rgba(r: int, g: int, b: int, a: int = 255) -> Color:
    """Convert 8-bit channels to a float RGBA color."""
    return (r / 255.0, g / 255.0, b / 255.0, a / 255.0)


DEFAULT_PALETTE: Tuple[Color, ...] = (
    rgba(243, 139, 168),
    rgba(250, 179, 135),
    rgba(249, 226, 175),
    rgba(166, 227, 161),
    rgba(148, 226, 213),
    rgba(137, 180, 250),
    rgba(203, 166, 247),
)

# Ranges used when filling a random interaction table
RANDOM_DIST_RANGE = (0.0, 100.0)
RANDOM_STRENGTH_RANGE = (-2.0, 1.0)


@dataclass(frozen=True)
class Interaction:
    """Force parameters for one ordered pair of species."""
    dist: float       # preferred surface-to-surface distance
    strength: float   # negative = repulsive, positive = attractive


class InteractionTable:
    """
    Square, asymmetric table of interactions.

    ``table[a, b]`` is the effect species ``b`` has on species ``a``; it is
    not required to equal ``table[b, a]``. The backing arrays are read-only,
    use ``with_interaction`` to derive a modified table.
    """

    def __init__(self, dist: Any, strength: Any):
        dist = np.array(dist, dtype=float)
        strength = np.array(strength, dtype=float)

        if dist.ndim != 2 or dist.shape[0] != dist.shape[1]:
            raise ValueError(f"Interaction table must be square, got shape {dist.shape}")
        if dist.shape[0] == 0:
            raise ValueError("Interaction table needs at least one species")
        if strength.shape != dist.shape:
            raise ValueError(
                f"Strength shape {strength.shape} doesn't match "
                f"distance shape {dist.shape}"
            )
        if not (np.all(np.isfinite(dist)) and np.all(np.isfinite(strength))):
            raise ValueError("Interaction table contains non-finite values")

        dist.flags.writeable = False
        strength.flags.writeable = False
        self.dist = dist
        self.strength = strength

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Any]]) -> "InteractionTable":
        """
        Build a table from nested rows.

        Each cell may be an ``Interaction``, a ``{"dist", "strength"}`` mapping
        or a ``(dist, strength)`` pair.

        Raises:
            ValueError: if the rows are ragged or not square
        """
        n = len(rows)
        dist = np.zeros((n, n))
        strength = np.zeros((n, n))
        for i, row in enumerate(rows):
            if len(row) != n:
                raise ValueError(
                    f"Row {i} has {len(row)} entries, expected {n} (table must be square)"
                )
            for j, cell in enumerate(row):
                interaction = _as_interaction(cell)
                dist[i, j] = interaction.dist
                strength[i, j] = interaction.strength
        return cls(dist, strength)

    @classmethod
    def random(cls, n: int, rng: Optional[np.random.RandomState] = None) -> "InteractionTable":
        """Fill an ``n x n`` table with uniformly random distances and strengths."""
        rng = rng if rng is not None else np.random.RandomState()
        return cls(
            rng.uniform(*RANDOM_DIST_RANGE, (n, n)),
            rng.uniform(*RANDOM_STRENGTH_RANGE, (n, n)),
        )

    @property
    def size(self) -> int:
        return self.dist.shape[0]

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, pair: Tuple[int, int]) -> Interaction:
        a, b = pair
        return Interaction(float(self.dist[a, b]), float(self.strength[a, b]))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InteractionTable):
            return NotImplemented
        return (np.array_equal(self.dist, other.dist)
                and np.array_equal(self.strength, other.strength))

    def __repr__(self) -> str:
        return f"InteractionTable(size={self.size})"

    def with_interaction(self, a: int, b: int, interaction: Interaction) -> "InteractionTable":
        """Return a copy with the ``(a, b)`` entry replaced."""
        dist = self.dist.copy()
        strength = self.strength.copy()
        dist[a, b] = interaction.dist
        strength[a, b] = interaction.strength
        return InteractionTable(dist, strength)

    def to_rows(self) -> List[List[Dict[str, float]]]:
        return [
            [{"dist": float(self.dist[i, j]), "strength": float(self.strength[i, j])}
             for j in range(self.size)]
            for i in range(self.size)
        ]


def _as_interaction(cell: Any) -> Interaction:
    if isinstance(cell, Interaction):
        return cell
    if isinstance(cell, dict):
        try:
            return Interaction(float(cell["dist"]), float(cell["strength"]))
        except KeyError as exc:
            raise ValueError(f"Interaction entry missing {exc.args[0]!r}") from None
    if len(cell) != 2:
        raise ValueError(f"Interaction entry must be (dist, strength), got {cell!r}")
    return Interaction(float(cell[0]), float(cell[1]))


@dataclass(frozen=True)
class SimulationSettings:
    """
    Global tunables shared read-only by every particle of a run.

    Settings are never mutated while a simulation is stepping; changing a
    value means building a new instance (see ``replace``).
    """
    species_colors: Tuple[Color, ...]
    table: InteractionTable
    friction: float = 0.9
    interaction_radius: float = 70.0
    particle_radius: float = 5.0

    def __post_init__(self) -> None:
        colors = tuple(tuple(float(c) for c in color) for color in self.species_colors)
        object.__setattr__(self, "species_colors", colors)

        for color in colors:
            if len(color) != 4:
                raise ValueError(f"Species colors must have 4 components, got {color!r}")
        if len(colors) != self.table.size:
            raise ValueError(
                f"{len(colors)} species colors don't match "
                f"interaction table of size {self.table.size}"
            )
        if not 0.0 <= self.friction < 1.0:
            raise ValueError(f"Friction must be in [0, 1), got {self.friction}")
        if not self.interaction_radius > 0.0:
            raise ValueError(f"Interaction radius must be positive, got {self.interaction_radius}")
        if not self.particle_radius > 0.0:
            raise ValueError(f"Particle radius must be positive, got {self.particle_radius}")

    @property
    def species_count(self) -> int:
        return self.table.size

    def interaction(self, first: int, second: int) -> Interaction:
        return self.table[first, second]

    def species_color(self, species: int) -> Color:
        return self.species_colors[species]

    def replace(self, **changes: Any) -> "SimulationSettings":
        """Build a new settings object with some fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def random(
        cls,
        rng: Optional[np.random.RandomState] = None,
        palette: Sequence[Color] = DEFAULT_PALETTE,
    ) -> "SimulationSettings":
        """Random interaction table over the default palette."""
        return cls(
            species_colors=tuple(palette),
            table=InteractionTable.random(len(palette), rng),
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for JSON serialization"""
        return {
            "speciesRelations": self.table.to_rows(),
            "species": [list(color) for color in self.species_colors],
            "friction": self.friction,
            "interactionDist": self.interaction_radius,
            "particleSize": self.particle_radius,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationSettings":
        """Create settings from dictionary"""
        try:
            return cls(
                species_colors=tuple(tuple(c) for c in data["species"]),
                table=InteractionTable.from_rows(data["speciesRelations"]),
                friction=float(data["friction"]),
                interaction_radius=float(data["interactionDist"]),
                particle_radius=float(data["particleSize"]),
            )
        except KeyError as exc:
            raise ValueError(f"Settings record missing field {exc.args[0]!r}") from None
        except TypeError as exc:
            raise ValueError(f"Malformed settings record: {exc}") from None

    def save(self, filepath: str) -> None:
        """Save settings to JSON file"""
        os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else '.', exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        print(f"Settings saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "SimulationSettings":
        """
        Load settings from JSON file.

        Raises:
            OSError: if the file can't be read
            ValueError: if the content isn't a valid settings record
        """
        with open(filepath, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings record must be an object, got {type(data).__name__}")
        return cls.from_dict(data)

    @classmethod
    def load_or_random(
        cls,
        filepath: Optional[str],
        rng: Optional[np.random.RandomState] = None,
    ) -> "SimulationSettings":
        """Load settings, falling back to random ones if the file is unusable."""
        if filepath:
            try:
                settings = cls.load(filepath)
                print(f"Loaded settings from {filepath}")
                return settings
            except (OSError, ValueError) as e:
                print(f"Could not load settings from {filepath} ({e}), using random settings")
        return cls.random(rng)
