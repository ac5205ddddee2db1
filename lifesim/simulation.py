"""Particle life engine: pairwise interaction pass, integration pass and frame driver."""
from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

import numpy as np

from . import metrics
from .config import SimConfig
from .settings import Color, SimulationSettings

T = TypeVar("T")
R = TypeVar("R")


# ============================================================================
# Engine constants
# ============================================================================

SAME_POINT_EPS = 1e-3       # squared distance below which two particles coincide
FORCE_SCALE = 100.0         # total force -> acceleration
SEPARATION_GAIN = 10.0      # spring toward the averaged separation point
POINTER_RADIUS = 200.0
POINTER_GAIN = 0.1
CENTERING_DIVISOR = 20.0
CENTERING_EPS = 1e-6
LOOK_AHEAD = 0.1            # seconds of travel shown by the velocity vector


def _vec(value: Any) -> np.ndarray:
    return np.array(value, dtype=float).reshape(2)


def elliptic_space(
    position: np.ndarray,
    velocity: np.ndarray,
    min_corner: np.ndarray,
    max_corner: np.ndarray,
) -> np.ndarray:
    """
    Wrap a position around the world rectangle in the direction of travel.

    An axis is only wrapped when the particle is past an edge *and* still
    moving outward, so a particle sitting on an edge while heading back
    inside is left alone. This is not a clamp: positions may sit outside
    the rectangle for a tick.
    """
    position = np.array(position, dtype=float)
    span = np.asarray(max_corner) - np.asarray(min_corner)
    for axis in range(2):
        if position[axis] > max_corner[axis] and velocity[axis] > 0.0:
            position[axis] -= span[axis]
        elif position[axis] < min_corner[axis] and velocity[axis] < 0.0:
            position[axis] += span[axis]
    return position


class PopulationSnapshot:
    """Read-only positions and species of a population, taken at the start of a tick."""

    def __init__(self, positions: Any, species: Any):
        positions = np.array(positions, dtype=float).reshape(-1, 2)
        species = np.array(species, dtype=int).reshape(-1)
        if len(positions) != len(species):
            raise ValueError(
                f"{len(positions)} positions don't match {len(species)} species entries"
            )
        positions.flags.writeable = False
        species.flags.writeable = False
        self.positions = positions
        self.species = species

    @classmethod
    def of(cls, particles: Sequence["Particle"]) -> "PopulationSnapshot":
        if not particles:
            return cls(np.zeros((0, 2)), np.zeros(0, dtype=int))
        return cls(
            np.array([p.position for p in particles]),
            [p.species for p in particles],
        )

    def __len__(self) -> int:
        return len(self.species)


@dataclass(eq=False)
class Particle:
    """
    One point particle.

    Holds a shared, never mutated reference to the run's settings. Vectors
    are float64 numpy arrays of length 2.
    """
    settings: SimulationSettings
    species: int
    position: np.ndarray
    velocity: np.ndarray
    bounds: Tuple[np.ndarray, np.ndarray]
    acceleration: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def __post_init__(self) -> None:
        self.position = _vec(self.position)
        self.velocity = _vec(self.velocity)
        self.acceleration = _vec(self.acceleration)
        lo, hi = self.bounds
        lo, hi = _vec(lo), _vec(hi)
        if np.any(hi <= lo):
            raise ValueError(f"Bounds max {hi} must exceed min {lo} on both axes")
        self.bounds = (lo, hi)

        self.species = int(self.species)
        if not 0 <= self.species < self.settings.species_count:
            raise ValueError(
                f"Species {self.species} out of range for "
                f"{self.settings.species_count} species"
            )

    @classmethod
    def random(
        cls,
        settings: SimulationSettings,
        min_corner: Any,
        max_corner: Any,
        rng: Optional[np.random.RandomState] = None,
        speed: float = 100.0,
    ) -> "Particle":
        """Uniform position inside the bounds, random species, fixed speed in a random direction."""
        rng = rng if rng is not None else np.random.RandomState()
        min_corner, max_corner = _vec(min_corner), _vec(max_corner)
        angle = rng.uniform(0.0, 2 * np.pi)
        return cls(
            settings=settings,
            species=rng.randint(0, settings.species_count),
            position=rng.uniform(min_corner, max_corner),
            velocity=speed * np.array([np.cos(angle), np.sin(angle)]),
            bounds=(min_corner, max_corner),
        )

    def copy(self) -> "Particle":
        return Particle(
            settings=self.settings,
            species=self.species,
            position=self.position,
            velocity=self.velocity,
            bounds=self.bounds,
            acceleration=self.acceleration,
        )

    # ------------------------------------------------------------------
    # Interaction pass
    # ------------------------------------------------------------------

    def interact(
        self,
        dt: float,
        population: Union[PopulationSnapshot, Sequence["Particle"]],
    ) -> int:
        """
        Accumulate the force from every other particle and update velocity.

        Reads only ``population`` (the previous frame) and writes only to
        this particle. Pairs closer than ``SAME_POINT_EPS`` (including the
        particle's own snapshot entry) and pairs beyond the interaction
        radius are skipped. The force on this particle from another uses
        ``table[self.species, other.species]``.

        When two or more neighbours overlap this particle, its position is
        snapped to the mean of the proposed separation points right away and
        a spring toward that point is added to the force. A single overlap
        only contributes through the force law.

        Args:
            dt: Frame time in seconds
            population: Snapshot (or particle sequence) of the previous frame

        Returns:
            Number of overlapping neighbours
        """
        if not isinstance(population, PopulationSnapshot):
            population = PopulationSnapshot.of(population)

        settings = self.settings
        radius = settings.interaction_radius
        size = settings.particle_radius

        force = np.zeros(2)
        collisions = 0

        if len(population):
            delta = population.positions - self.position
            dist2 = np.einsum("ij,ij->i", delta, delta)
            near = (dist2 >= SAME_POINT_EPS) & (dist2 <= radius * radius)

            if np.any(near):
                delta = delta[near]
                dist = np.sqrt(dist2[near])
                direction = delta / dist[:, np.newaxis]

                others = population.species[near]
                preferred = settings.table.dist[self.species, others]
                strength = settings.table.strength[self.species, others]

                # Signed gain: deviation of the surface gap from the preferred distance
                gain = strength * (preferred - (dist - 2.0 * size)) / radius
                force = (direction * gain[:, np.newaxis]).sum(axis=0)

                overlap = dist < 2.0 * size
                collisions = int(np.count_nonzero(overlap))
                if collisions > 1:
                    targets = (self.position + delta[overlap] / 2.0
                               - direction[overlap] * size)
                    target = targets.sum(axis=0) / collisions
                    force = force + (target - self.position) * SEPARATION_GAIN
                    self.position = target

        self.acceleration = force * FORCE_SCALE
        self.velocity = self.velocity + self.acceleration * dt
        return collisions

    # ------------------------------------------------------------------
    # Integration pass
    # ------------------------------------------------------------------

    def integrate(self, dt: float, pointer_target: Optional[Any] = None) -> None:
        """Advance position, wrap at the bounds, apply pointer/centering pulls and friction."""
        self.position = self.position + self.velocity * dt
        self.position = elliptic_space(self.position, self.velocity, *self.bounds)

        if pointer_target is not None:
            diff = _vec(pointer_target) - self.position
            length = float(np.linalg.norm(diff))
            if 0.0 < length < POINTER_RADIUS:
                self.velocity = self.velocity + diff / length * dt * length * length * POINTER_GAIN

        distance = float(np.linalg.norm(self.position))
        if distance > CENTERING_EPS:
            self.velocity = (self.velocity
                             - self.position / distance * math.sqrt(distance) / CENTERING_DIVISOR)

        self.velocity = self.velocity * self.settings.friction

    # ------------------------------------------------------------------
    # Render accessors
    # ------------------------------------------------------------------

    @property
    def radius(self) -> float:
        return self.settings.particle_radius

    @property
    def color(self) -> Color:
        return self.settings.species_color(self.species)

    def predicted_position(self, horizon: float = LOOK_AHEAD) -> np.ndarray:
        """Point the particle reaches after ``horizon`` seconds at its current velocity."""
        return self.position + self.velocity * horizon

    def to_state(self) -> Dict[str, Any]:
        ahead = self.predicted_position()
        return {
            "species": self.species,
            "x": float(self.position[0]),
            "y": float(self.position[1]),
            "ax": float(ahead[0]),
            "ay": float(ahead[1]),
        }


class Simulation:
    """
    Frame driver for a population of particles.

    Each tick interacts a clone of every particle against a snapshot of the
    previous frame, swaps the clones in, then integrates them. Both passes
    fan out over a thread pool when ``config.workers > 1``.
    """

    def __init__(
        self,
        config: SimConfig,
        settings: Optional[SimulationSettings] = None,
        rng: Optional[np.random.RandomState] = None,
    ):
        self.config = config
        self.rng = rng if rng is not None else np.random.RandomState(config.seed)

        if settings is None:
            settings = SimulationSettings.load_or_random(config.settings_path, self.rng)
        self.settings = settings
        self.bounds = config.bounds

        self._executor: Optional[ThreadPoolExecutor] = None
        if config.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=config.workers, thread_name_prefix="lifesim"
            )

        self.particles: List[Particle] = self._spawn()
        self.tick = 0
        self.t = 0.0
        self.last_collisions = 0

    def _spawn(self) -> List[Particle]:
        lo, hi = self.bounds
        return [
            Particle.random(self.settings, lo, hi, self.rng, speed=self.config.initial_speed)
            for _ in range(self.config.n_particles)
        ]

    def _fan_out(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Map ``fn`` over contiguous chunks of ``items``, keeping order."""
        if self._executor is None or len(items) < 2:
            return [fn(item) for item in items]

        size = math.ceil(len(items) / self.config.workers)
        chunks = [items[i:i + size] for i in range(0, len(items), size)]
        results = self._executor.map(lambda chunk: [fn(item) for item in chunk], chunks)
        return [result for chunk in results for result in chunk]

    @property
    def positions(self) -> np.ndarray:
        return np.array([p.position for p in self.particles]).reshape(-1, 2)

    @property
    def velocities(self) -> np.ndarray:
        return np.array([p.velocity for p in self.particles]).reshape(-1, 2)

    @property
    def species(self) -> np.ndarray:
        return np.array([p.species for p in self.particles], dtype=int)

    def step(self, dt: Optional[float] = None, pointer_target: Optional[Any] = None) -> None:
        """Advance simulation by one tick."""
        dt = self.config.dt if dt is None else dt
        snapshot = PopulationSnapshot.of(self.particles)

        def interact(particle: Particle) -> Tuple[Particle, int]:
            clone = particle.copy()
            return clone, clone.interact(dt, snapshot)

        results = self._fan_out(interact, self.particles)
        self.particles = [clone for clone, _ in results]
        self.last_collisions = sum(count for _, count in results)

        target = None if pointer_target is None else _vec(pointer_target)
        self._fan_out(lambda p: p.integrate(dt, target), self.particles)

        self.tick += 1
        self.t += dt

    def reset(self) -> None:
        """Re-randomize the population with the current settings."""
        self.particles = self._spawn()
        self.tick = 0
        self.t = 0.0
        self.last_collisions = 0

    def set_settings(self, settings: SimulationSettings) -> None:
        """
        Install new settings.

        Particles are rebound in place when the species count is unchanged;
        otherwise the population is re-randomized so every species index
        stays valid.
        """
        same_species = settings.species_count == self.settings.species_count
        self.settings = settings
        if same_species:
            for particle in self.particles:
                particle.settings = settings
        else:
            self.reset()

    def get_state(self) -> Dict[str, Any]:
        """Get current state for API/visualization."""
        lo, hi = self.bounds
        velocities = self.velocities
        centroids = metrics.species_centroids(
            self.positions, self.species, self.settings.species_count
        )
        return {
            "bounds": {"min": lo.tolist(), "max": hi.tolist()},
            "t": self.t,
            "tick": self.tick,
            "species_count": self.settings.species_count,
            "colors": [list(c) for c in self.settings.species_colors],
            "particle_radius": self.settings.particle_radius,
            "particles": [
                dict(id=i, **p.to_state()) for i, p in enumerate(self.particles)
            ],
            "metrics": {
                "kinetic_energy": metrics.kinetic_energy(velocities),
                "mean_speed": metrics.mean_speed(velocities),
                "collisions": self.last_collisions,
                # null for species with no particles
                "centroids": [
                    None if np.isnan(c).any() else c.tolist() for c in centroids
                ],
            },
        }

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "Simulation":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
