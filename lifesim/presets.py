"""Preset interaction tables with hand-picked species behaviour."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .settings import DEFAULT_PALETTE, InteractionTable, SimulationSettings


@dataclass
class Preset:
    """A named interaction table plus the physics tunables it was tuned with."""
    name: str
    description: str
    dist: np.ndarray      # Shape (n_species, n_species)
    strength: np.ndarray  # Shape (n_species, n_species)
    friction: float = 0.9
    interaction_radius: float = 70.0
    particle_radius: float = 5.0

    @property
    def n_species(self) -> int:
        return len(self.dist)

    @property
    def table(self) -> InteractionTable:
        return InteractionTable(self.dist, self.strength)

    def settings(self, palette: Optional[List] = None) -> SimulationSettings:
        """Build settings for this preset, colouring species from the palette."""
        palette = list(DEFAULT_PALETTE if palette is None else palette)
        if len(palette) < self.n_species:
            raise ValueError(
                f"Palette has {len(palette)} colors, preset '{self.name}' "
                f"needs {self.n_species}"
            )
        return SimulationSettings(
            species_colors=tuple(palette[:self.n_species]),
            table=self.table,
            friction=self.friction,
            interaction_radius=self.interaction_radius,
            particle_radius=self.particle_radius,
        )


# ============================================================================
# Preset Definitions
# ============================================================================

# 2-species: one species chases the other, which flees
PREDATOR_PREY = Preset(
    name="predator_prey",
    description="2-species chase: hunters are drawn to prey, prey keeps its distance",
    dist=np.array([
        [30.0,  5.0],
        [30.0, 20.0],
    ]),
    strength=np.array([
        [-0.5,  0.8],   # Hunters: spread out, close in on prey
        [-1.5,  0.3],   # Prey: push away from hunters, loose flock
    ]),
)

# 3-species: cyclic pursuit (rock-paper-scissors)
CYCLIC = Preset(
    name="cyclic",
    description="3-species cyclic chase (rock-paper-scissors dynamics)",
    dist=np.array([
        [15.0, 10.0, 40.0],
        [40.0, 15.0, 10.0],
        [10.0, 40.0, 15.0],
    ]),
    strength=np.array([
        [0.2,  0.9, -0.6],
        [-0.6, 0.2,  0.9],
        [0.9, -0.6,  0.2],
    ]),
)

# 4-species: same-species clumps that avoid each other
CELLS = Preset(
    name="cells",
    description="4-species clumping: tight same-species cells that repel other cells",
    dist=np.full((4, 4), 50.0) - np.eye(4) * 45.0,
    strength=np.full((4, 4), -1.0) + np.eye(4) * 1.8,
    friction=0.85,
)

# 7-species: membranes, one ring of species wrapped around the next
MEMBRANES = Preset(
    name="membranes",
    description="7-species layered clusters where each species coats the next",
    dist=np.full((7, 7), 20.0) + np.eye(7, k=1) * -15.0,
    strength=np.full((7, 7), -0.4) + np.eye(7) * 0.6 + np.eye(7, k=1) * 1.0,
    interaction_radius=80.0,
)


# ============================================================================
# Preset Registry
# ============================================================================

PRESETS: Dict[str, Preset] = {
    "predator_prey": PREDATOR_PREY,
    "cyclic": CYCLIC,
    "cells": CELLS,
    "membranes": MEMBRANES,
}


def list_presets() -> List[Preset]:
    """Return list of all available presets."""
    return list(PRESETS.values())


def get_preset(name: str) -> Preset:
    """Get preset by name."""
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]
