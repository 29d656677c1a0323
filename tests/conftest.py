"""
Fixtures communes à tous les tests.
"""

import numpy as np
import pytest

from hikm.builder.clustering import IKMeans


@pytest.fixture
def quiet_config():
    """Configuration explicite sans récepteur de progression."""
    return {
        "build_tree": {"method": "lloyd", "max_niters": 200, "verbosity": 0, "seed": 0},
        "progress": {"sink": "none"},
    }


@pytest.fixture
def four_points():
    """Deux paires de points bien séparées (M=2)."""
    return np.array([
        [0, 0],
        [0, 1],
        [9, 9],
        [9, 10],
    ], dtype=np.uint8)


@pytest.fixture
def two_groups():
    """Deux groupes éloignés de 4 points, chacun formé de deux paires."""
    return np.array([
        [0, 0],
        [0, 1],
        [3, 3],
        [3, 4],
        [100, 100],
        [100, 101],
        [103, 103],
        [103, 104],
    ], dtype=np.uint8)


@pytest.fixture
def blobs():
    """Quatre nuages de 40 points entiers en dimension 3."""
    rng = np.random.default_rng(42)
    centers = np.array([
        [10, 10, 10],
        [60, 10, 200],
        [200, 120, 30],
        [120, 220, 220],
    ])
    points = np.vstack([c + rng.integers(-6, 7, size=(40, 3)) for c in centers])
    return points.astype(np.uint8)


@pytest.fixture
def counting_engine():
    """Modèle k-means qui compte ses créations et ses destructions."""

    class CountingIKMeans(IKMeans):
        created = 0
        destroyed = 0

        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            type(self).created += 1

        def delete(self):
            type(self).destroyed += 1
            super().delete()

    return CountingIKMeans
