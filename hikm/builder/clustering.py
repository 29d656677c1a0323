"""
Module de clustering pour HIKM.
Implémente le k-means entier à un seul niveau (IKM) que chaque nœud de
l'arbre utilise pour s'entraîner et pour affecter les points.

Trois méthodes d'entraînement sont disponibles :
- "lloyd" : itérations de Lloyd en arithmétique entière exacte (numpy)
- "elkan" : KMeans de scikit-learn avec l'algorithme d'Elkan
- "faiss" : faiss.Kmeans

Quelle que soit la méthode, les centres sont tronqués en entiers après
l'entraînement et l'affectation est toujours le plus proche centre au sens
de la distance euclidienne au carré, calculée en entiers (à égalité, la plus
petite étiquette l'emporte).
"""

import math
from typing import Optional, Union

import numpy as np
import faiss
from sklearn.cluster import KMeans

METHODS = ("lloyd", "elkan", "faiss")

# Nombre d'itérations maximal par défaut
DEFAULT_MAX_NITERS = 200

# Bornes des coordonnées et des distances accumulées
MAX_INT32 = 2 ** 31 - 1
INT64_MAX = 2 ** 63 - 1


def max_abs_value(m: int) -> int:
    """
    Plus grande valeur absolue admise pour une coordonnée en dimension m.

    Borne l'accumulation ||x||² - 2 x.c + ||c||² (au plus 4 m v²) dans un int64,
    sans dépasser la plage des entiers 32 bits.
    """
    return min(MAX_INT32, math.isqrt(INT64_MAX // (4 * max(m, 1))))


def check_int_data(data, name: str = "data") -> np.ndarray:
    """
    Vérifie que les données sont un tableau 2D d'entiers de magnitude bornée.

    Args:
        data: Données à vérifier (shape: [N, M])
        name: Nom utilisé dans les messages d'erreur

    Returns:
        np.ndarray: Les données sous forme de tableau numpy (sans copie si possible)
    """
    data = np.asarray(data)
    if data.ndim != 2:
        raise ValueError(f"{name} doit être un tableau 2D (N, M), reçu shape={data.shape}")
    if not np.issubdtype(data.dtype, np.integer):
        raise ValueError(f"{name} doit contenir des entiers, reçu dtype={data.dtype}")

    limit = max_abs_value(data.shape[1])
    info = np.iinfo(data.dtype)
    if data.size > 0 and (info.max > limit or info.min < -limit):
        low, high = int(data.min()), int(data.max())
        if high > limit or low < -limit:
            raise ValueError(f"{name} contient des valeurs hors de [-{limit}, {limit}] "
                             f"(min={low}, max={high}) : les distances déborderaient")
    return data


def nearest_centers(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Affecte chaque point à son centre le plus proche.

    Args:
        data: Points entiers (shape: [N, M])
        centers: Centres entiers (shape: [K, M])

    Returns:
        np.ndarray: Étiquettes uint32 (shape: [N]); toutes nulles si K == 0
    """
    n = data.shape[0]
    if centers.shape[0] == 0:
        return np.zeros(n, dtype=np.uint32)

    x = data.astype(np.int64)
    c = centers.astype(np.int64)

    # ||x||² - 2 x.c + ||c||², exact en int64
    dist = (x * x).sum(axis=1)[:, None] - 2 * (x @ c.T) + (c * c).sum(axis=1)[None, :]
    return np.argmin(dist, axis=1).astype(np.uint32)


class IKMeans:
    """
    K-means entier à un niveau.

    Cycle de vie : création, init_rand_data (K centres tirés des données),
    train, puis push/push_one autant de fois que nécessaire, et enfin delete.
    """

    def __init__(self, method: str = "lloyd", random_state: Optional[Union[int, np.random.Generator]] = None):
        """
        Args:
            method: Méthode d'entraînement ("lloyd", "elkan" ou "faiss")
            random_state: Graine ou générateur numpy utilisé pour l'initialisation
        """
        if method not in METHODS:
            raise ValueError(f"Méthode inconnue: {method!r} (attendu l'une de {METHODS})")

        self.method = method
        self.max_niters = DEFAULT_MAX_NITERS
        self.verbosity = 0
        self.rng = np.random.default_rng(random_state)

        self.centers: Optional[np.ndarray] = None  # (K, M) int64
        self.n_iters_actual = 0

    # ------------------------------------------------------------------
    # Paramètres
    # ------------------------------------------------------------------
    def set_max_niters(self, max_niters: int) -> None:
        self.max_niters = int(max_niters)

    def get_max_niters(self) -> int:
        return self.max_niters

    def set_verbosity(self, verbosity: int) -> None:
        self.verbosity = int(verbosity)

    def get_verbosity(self) -> int:
        return self.verbosity

    def get_k(self) -> int:
        """Nombre de centres effectivement configurés (0 avant l'initialisation)."""
        return 0 if self.centers is None else int(self.centers.shape[0])

    def get_ndims(self) -> int:
        return 0 if self.centers is None else int(self.centers.shape[1])

    def get_centers(self) -> np.ndarray:
        if self.centers is None:
            raise ValueError("Modèle non initialisé - appeler init_rand_data d'abord")
        return self.centers

    # ------------------------------------------------------------------
    # Initialisation et entraînement
    # ------------------------------------------------------------------
    def init_rand_data(self, data: np.ndarray, k: int) -> None:
        """
        Initialise K centres à partir de points tirés au hasard.

        Les points sont parcourus dans un ordre aléatoire et les doublons sont
        écartés; s'il y a moins de K points distincts, les centres manquants
        sont complétés par des points répétés.

        Args:
            data: Points entiers (shape: [N, M])
            k: Nombre de centres, 0 <= k <= N
        """
        data = check_int_data(data)
        n = data.shape[0]
        if k < 0 or k > n:
            raise ValueError(f"Impossible d'initialiser {k} centres à partir de {n} points")

        perm = self.rng.permutation(n)

        chosen = []
        seen = set()
        for i in perm:
            if len(chosen) == k:
                break
            key = data[i].tobytes()
            if key not in seen:
                seen.add(key)
                chosen.append(i)

        if len(chosen) < k:
            # Moins de k points distincts
            taken = set(chosen)
            chosen.extend([i for i in perm if i not in taken][:k - len(chosen)])

        self.centers = data[np.asarray(chosen, dtype=np.intp)].astype(np.int64)
        self.n_iters_actual = 0

    def train(self, data: np.ndarray) -> int:
        """
        Affine les centres sur les données.

        Un entraînement sur zéro point (ou avec zéro centre) ne fait rien :
        c'est le cas des branches vides de l'arbre.

        Args:
            data: Points entiers (shape: [N, M])

        Returns:
            int: Nombre d'itérations effectuées
        """
        if self.centers is None:
            raise ValueError("Modèle non initialisé - appeler init_rand_data d'abord")

        data = check_int_data(data)
        n, m = data.shape
        k = self.get_k()

        if n == 0 or k == 0 or self.max_niters <= 0:
            self.n_iters_actual = 0
            return 0

        if m != self.get_ndims():
            raise ValueError(f"Dimension des données ({m}) différente de celle des centres ({self.get_ndims()})")

        if self.method == "lloyd":
            self._train_lloyd(data)
        elif self.method == "elkan":
            self._train_elkan(data)
        else:
            self._train_faiss(data)

        return self.n_iters_actual

    def _train_lloyd(self, data: np.ndarray) -> None:
        k, m = self.centers.shape
        data64 = data.astype(np.int64)
        labels = None

        for i in range(self.max_niters):
            new_labels = nearest_centers(data64, self.centers)

            if labels is not None:
                changed = int(np.count_nonzero(new_labels != labels))
                if changed == 0:
                    if self.verbosity > 0:
                        print(f"  → ikmeans: convergence après {i} itérations")
                    break
            else:
                changed = len(new_labels)
            labels = new_labels

            counts = np.bincount(labels, minlength=k)
            sums = np.zeros((k, m), dtype=np.int64)
            np.add.at(sums, labels, data64)

            # Un cluster vide garde son centre précédent
            filled = counts > 0
            self.centers[filled] = np.trunc(sums[filled] / counts[filled, None]).astype(np.int64)
            self.n_iters_actual = i + 1

            if self.verbosity > 0:
                print(f"  → ikmeans: itération {i + 1}/{self.max_niters}, {changed} points réaffectés")

    def _train_elkan(self, data: np.ndarray) -> None:
        k = self.get_k()
        kmeans = KMeans(
            n_clusters=k,
            init=self.centers.astype(np.float64),
            n_init=1,
            max_iter=self.max_niters,
            tol=0.0,
            algorithm="elkan",
            verbose=max(0, self.verbosity),
        )
        kmeans.fit(data.astype(np.float64))

        self.centers = np.trunc(kmeans.cluster_centers_).astype(np.int64)
        self.n_iters_actual = int(kmeans.n_iter_)

    def _train_faiss(self, data: np.ndarray) -> None:
        k, m = self.centers.shape
        kmeans = faiss.Kmeans(
            m, k,
            niter=self.max_niters,
            verbose=self.verbosity > 0,
            seed=int(self.rng.integers(2 ** 31 - 1)),
            min_points_per_centroid=1,
        )
        kmeans.train(
            np.ascontiguousarray(data, dtype=np.float32),
            init_centroids=np.ascontiguousarray(self.centers, dtype=np.float32),
        )

        self.centers = np.trunc(kmeans.centroids).astype(np.int64)
        self.n_iters_actual = self.max_niters

    # ------------------------------------------------------------------
    # Affectation
    # ------------------------------------------------------------------
    def push(self, data: np.ndarray) -> np.ndarray:
        """
        Affecte chaque point au centre le plus proche.

        Args:
            data: Points entiers (shape: [N, M])

        Returns:
            np.ndarray: Étiquettes uint32 (shape: [N])
        """
        centers = self.get_centers()
        data = check_int_data(data)
        if data.shape[0] > 0 and centers.shape[0] > 0 and data.shape[1] != centers.shape[1]:
            raise ValueError(f"Dimension des données ({data.shape[1]}) différente de celle des centres ({centers.shape[1]})")
        return nearest_centers(data, centers)

    def push_one(self, point: np.ndarray) -> int:
        """Version pour un seul point (shape: [M])."""
        point = np.asarray(point)
        if point.ndim != 1:
            raise ValueError(f"Un point doit être un vecteur 1D, reçu shape={point.shape}")
        return int(self.push(point[None, :])[0])

    def delete(self) -> None:
        """Libère les centres du modèle."""
        self.centers = None
