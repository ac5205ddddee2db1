#!/usr/bin/env python3
"""Headless run of the simulation to check how the population evolves."""

import argparse

import numpy as np
from tqdm import tqdm

from lifesim import metrics
from lifesim.config import SimConfig
from lifesim.presets import get_preset
from lifesim.settings import SimulationSettings
from lifesim.simulation import Simulation


def report(sim: Simulation, label: str):
    X, V, species = sim.positions, sim.velocities, sim.species
    print(f"{label}: t={sim.t:.2f}s, overlaps={sim.last_collisions}")
    print(f"  Kinetic energy: {metrics.kinetic_energy(V):.2f}")
    print(f"  Mean speed: {metrics.mean_speed(V):.2f}")
    for s in range(sim.settings.species_count):
        mask = species == s
        print(f"  Species {s}: n={int(mask.sum())}, "
              f"radius={metrics.species_radius(X, mask):.1f}, "
              f"spacing={metrics.mean_spacing_same(X, mask):.1f}, "
              f"to others={metrics.mean_spacing_cross(X, mask, ~mask):.1f}")
    centroids = metrics.species_centroids(X, species, sim.settings.species_count)
    for s, (cx, cy) in enumerate(centroids):
        print(f"  Centroid {s}: ({cx:.1f}, {cy:.1f})")


def main():
    p = argparse.ArgumentParser(description="Run particle life without a window.")
    p.add_argument("--steps", type=int, default=300)
    p.add_argument("--stride", type=int, default=100, help="report every k steps")
    p.add_argument("--particles", type=int, default=400)
    p.add_argument("--dt", type=float, default=1.0 / 60.0)
    p.add_argument("--workers", type=int, default=4)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--load", type=str, default=None, help="settings file")
    p.add_argument("--preset", type=str, default=None, help="preset name, overrides --load")
    args = p.parse_args()

    config = SimConfig(n_particles=args.particles, dt=args.dt, workers=args.workers,
                       seed=args.seed, settings_path=args.load)
    rng = np.random.RandomState(args.seed)
    if args.preset:
        settings = get_preset(args.preset).settings()
    else:
        settings = SimulationSettings.load_or_random(args.load, rng)

    with Simulation(config, settings, rng) as sim:
        report(sim, "Initial state")
        for i in tqdm(range(args.steps), desc="Simulating", unit="tick"):
            sim.step()
            if (i + 1) % args.stride == 0:
                tqdm.write("")
                report(sim, f"Step {i + 1}")


if __name__ == "__main__":
    main()
