import numpy as np


def _centroid(X, mask):
    if mask.sum() == 0:
        return np.array([np.nan, np.nan])
    return X[mask].mean(axis=0)

def species_centroids(X, species, n_species):
    # [n_species, 2], NaN rows for species with no particles
    return np.array([_centroid(X, species == s) for s in range(n_species)]).reshape(-1, 2)

def species_radius(X, mask):
    # Mean distance of a species' particles from their centroid
    if not mask.any():
        return float("nan")
    c = _centroid(X, mask)
    return float(np.sqrt(((X[mask] - c)**2).sum(axis=1)).mean())

def kinetic_energy(V):
    # 0.5 * mean(|v|^2) with m=1
    if len(V) == 0:
        return 0.0
    return 0.5 * float((V*V).sum(axis=1).mean())

def mean_speed(V):
    if len(V) == 0:
        return 0.0
    return float(np.sqrt((V*V).sum(axis=1)).mean())

def _distances(Xa, Xb):
    # [na, nb] matrix of Euclidean distances
    return np.linalg.norm(Xa[:, np.newaxis, :] - Xb[np.newaxis, :, :], axis=2)

def mean_spacing_same(X, mask):
    # Mean distance over distinct pairs of one species
    Xs = X[mask]
    if len(Xs) < 2:
        return float("nan")
    rows, cols = np.triu_indices(len(Xs), k=1)
    return float(_distances(Xs, Xs)[rows, cols].mean())

def mean_spacing_cross(X, mask_a, mask_b):
    # Mean distance between every particle of one group and every particle of another
    if not mask_a.any() or not mask_b.any():
        return float("nan")
    return float(_distances(X[mask_a], X[mask_b]).mean())
