"""Run configuration for the particle life simulation."""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional, Tuple

import numpy as np


@dataclass
class SimConfig:
    """Configuration for one simulation run (everything except the physics settings)."""

    # World, centred on the origin
    width: float = 1600.0
    height: float = 1000.0

    # Particles
    n_particles: int = 800
    initial_speed: float = 100.0

    # Ticking
    dt: float = 1.0 / 60.0        # Used when the caller doesn't supply a frame time
    frame_interval: float = 0.03  # Time between WebSocket frames
    workers: int = 4              # Threads fanning out each pass; 1 = sequential

    seed: Optional[int] = None
    settings_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"World size must be positive, got {self.width}x{self.height}")
        if self.n_particles < 0:
            raise ValueError(f"Particle count can't be negative, got {self.n_particles}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.workers < 1:
            raise ValueError(f"Need at least one worker, got {self.workers}")

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """World rectangle as (min, max) corners."""
        half = np.array([self.width, self.height], dtype=float) / 2.0
        return -half, half

    def as_dict(self) -> dict:
        return asdict(self)


DEFAULT_CONFIG = SimConfig()
