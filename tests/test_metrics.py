import math

import numpy as np
import pytest

from lifesim import metrics


def test_kinetic_energy_and_mean_speed():
    V = np.array([[3.0, 4.0], [0.0, 0.0]])
    assert metrics.kinetic_energy(V) == pytest.approx(6.25)
    assert metrics.mean_speed(V) == pytest.approx(2.5)
    assert metrics.kinetic_energy(np.zeros((0, 2))) == 0.0


def test_species_centroids_and_radius():
    X = np.array([[0.0, 0.0], [2.0, 0.0], [10.0, 10.0]])
    species = np.array([0, 0, 1])

    centroids = metrics.species_centroids(X, species, 3)
    assert centroids[0] == pytest.approx([1.0, 0.0])
    assert centroids[1] == pytest.approx([10.0, 10.0])
    assert np.all(np.isnan(centroids[2]))
    assert metrics.species_radius(X, species == 0) == pytest.approx(1.0)
    assert math.isnan(metrics.species_radius(X, species == 2))


def test_mean_spacing():
    X = np.array([[0.0, 0.0], [3.0, 4.0], [6.0, 8.0]])
    same = np.array([True, True, False])
    other = ~same

    assert metrics.mean_spacing_same(X, same) == pytest.approx(5.0)
    assert math.isnan(metrics.mean_spacing_same(X, other))
    assert metrics.mean_spacing_cross(X, same, other) == pytest.approx(7.5)
