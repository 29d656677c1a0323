"""
Module de structures d'arbre pour HIKM.
Définit l'arbre de k-means entier hiérarchique et ses nœuds.

Les nœuds sont rangés dans une arène unique (``HIKMTree.nodes``) : la racine
est à l'indice 0 et les enfants d'un nœud occupent un bloc contigu
``[children_start, children_start + children_count)``, indexé par étiquette.
"""

from typing import Any, Callable, Dict, List, Optional

import numpy as np

from hikm.builder.clustering import IKMeans, METHODS, check_int_data
from hikm.utils.config import ConfigManager, resolve_section
from hikm.utils.progress import ProgressSink, make_progress


class HIKMNode:
    """
    Noeud d'un arbre HIKM.
    Possède son modèle k-means entier et connaît le bloc de ses enfants dans l'arène.
    """

    def __init__(self, node_filter: IKMeans, level: int = 0, n_points: int = 0):
        """
        Args:
            node_filter: Modèle k-means entraîné sur les points du nœud
            level: Niveau du nœud dans l'arbre (0 = racine)
            n_points: Nombre de points d'entraînement arrivés à ce nœud
        """
        self.filter = node_filter
        self.level = level
        self.n_points = n_points
        self.children_start = -1  # -1 pour les feuilles
        self.children_count = 0

    def is_leaf(self) -> bool:
        return self.children_start < 0

    def is_empty(self) -> bool:
        """Vrai pour un nœud entraîné sur zéro point (aucun centre)."""
        return self.filter.get_k() == 0

    def get_k(self) -> int:
        return self.filter.get_k()

    def get_centers(self) -> np.ndarray:
        return self.filter.get_centers()

    def children_range(self) -> range:
        if self.is_leaf():
            return range(0)
        return range(self.children_start, self.children_start + self.children_count)

    def __str__(self) -> str:
        if self.is_leaf():
            return f"Leaf(level={self.level}, K={self.get_k()}, points={self.n_points})"
        return f"Node(level={self.level}, children={self.children_count}, points={self.n_points})"


class HIKMTree:
    """
    Arbre de k-means entier hiérarchique.

    États : "new" (rien de configuré), "configured" (M, K et la profondeur
    fixés par init) puis "trained" (arène construite par train).
    """

    def __init__(
        self,
        method: Optional[str] = None,
        max_niters: Optional[int] = None,
        verbosity: Optional[int] = None,
        seed: Optional[int] = None,
        progress: Optional[ProgressSink] = None,
        engine_factory: Optional[Callable[..., IKMeans]] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialise un arbre HIKM vide.

        Les paramètres explicites l'emportent sur la configuration (config.yaml
        ou le dictionnaire ``config``).

        Args:
            method: Méthode du k-means de chaque nœud ("lloyd", "elkan", "faiss")
            max_niters: Nombre maximal d'itérations par nœud
            verbosity: Niveau de verbosité; la progression d'un niveau est
                       notifiée lorsque verbosity > niveau
            seed: Graine de l'initialisation des centres (None = aléatoire)
            progress: Récepteur ``(level, percent)`` des notifications
            engine_factory: Fabrique ``(method, random_state=...)`` des modèles de nœud
            config: Configuration explicite (mêmes sections que config.yaml)
        """
        if config is None:
            config = ConfigManager().config
        build_config = resolve_section(config, "build_tree")
        progress_config = resolve_section(config, "progress")

        self.method = method if method is not None else build_config.get("method", "lloyd")
        if self.method not in METHODS:
            raise ValueError(f"Méthode inconnue: {self.method!r} (attendu l'une de {METHODS})")

        self.max_niters = max_niters if max_niters is not None else build_config.get("max_niters", 200)
        self.verbosity = verbosity if verbosity is not None else build_config.get("verbosity", 0)
        self.seed = seed if seed is not None else build_config.get("seed")
        self.progress = progress if progress is not None else make_progress(progress_config.get("sink", "print"))
        self.engine_factory = engine_factory or IKMeans

        self.M = 0
        self.K = 0
        self.depth = 0
        self.configured = False

        self.nodes: List[Optional[HIKMNode]] = []
        self._rng: Optional[np.random.Generator] = None

    # ------------------------------------------------------------------
    # Cycle de vie
    # ------------------------------------------------------------------
    @property
    def state(self) -> str:
        if self.nodes:
            return "trained"
        return "configured" if self.configured else "new"

    def init(self, M: int, K: int, depth: int) -> None:
        """
        Configure l'arbre et détruit tout arbre déjà entraîné.

        Args:
            M: Dimension des données
            K: Nombre de clusters par nœud
            depth: Profondeur de l'arbre
        """
        for name, value in (("M", M), ("K", K), ("depth", depth)):
            if int(value) < 1:
                raise ValueError(f"{name} doit être >= 1, reçu {value}")

        self.delete()

        self.M = int(M)
        self.K = int(K)
        self.depth = int(depth)
        self.configured = True

    def train(self, data: np.ndarray) -> None:
        """
        Entraîne l'arbre sur les données.

        Un arbre déjà entraîné est d'abord détruit : ré-entraîner ne fuit
        aucun nœud ni aucun modèle.

        Args:
            data: Points entiers (shape: [N, M]), N >= 1
        """
        if not self.configured:
            raise ValueError("Arbre non configuré - appeler init(M, K, depth) avant train")

        data = check_int_data(data)
        n, m = data.shape
        if m != self.M:
            raise ValueError(f"Dimension des données ({m}) différente de M={self.M}")
        if n < 1:
            raise ValueError("Impossible d'entraîner un arbre sur zéro point")

        self.delete()

        # Importation locale pour éviter les dépendances circulaires
        from hikm.builder.builder import build_node

        self._rng = np.random.default_rng(self.seed)
        try:
            build_node(self, data, min(self.K, n), self.depth)
        except BaseException:
            # Pas d'arène à moitié construite : retour à l'état "configured"
            self.delete()
            raise

    def delete(self) -> None:
        """
        Détruit tous les nœuds : chaque modèle est libéré une seule fois, puis
        l'arène est vidée d'un coup. Sans effet sur un arbre sans racine.
        """
        for node in self.nodes:
            if node is not None:
                node.filter.delete()
        self.nodes = []

    # ------------------------------------------------------------------
    # Arène (utilisée par le constructeur)
    # ------------------------------------------------------------------
    def new_filter(self) -> IKMeans:
        """Crée le modèle k-means d'un nouveau nœud avec les paramètres de l'arbre."""
        node_filter = self.engine_factory(self.method, random_state=self._rng)
        node_filter.set_max_niters(self.max_niters)
        node_filter.set_verbosity(self.verbosity - 1)
        return node_filter

    def reserve(self, count: int) -> int:
        """Réserve un bloc contigu de ``count`` emplacements et retourne son début."""
        start = len(self.nodes)
        self.nodes.extend([None] * count)
        return start

    def store(self, node: HIKMNode, slot: Optional[int] = None) -> int:
        """Range un nœud dans un emplacement réservé, ou à la fin de l'arène."""
        if slot is None:
            self.nodes.append(node)
            return len(self.nodes) - 1
        self.nodes[slot] = node
        return slot

    # ------------------------------------------------------------------
    # Affectation
    # ------------------------------------------------------------------
    def push(self, data: np.ndarray) -> np.ndarray:
        """
        Projette des points dans l'arbre, de la racine jusqu'à une feuille.

        L'arbre n'est pas modifié : deux appels identiques donnent le même
        résultat et les points sont traités indépendamment. Si la descente
        atteint un nœud vide (entraîné sur zéro point), les positions
        restantes du chemin valent 0.

        Args:
            data: Points entiers (shape: [N, M]) ou un seul point (shape: [M])

        Returns:
            np.ndarray: Chemins uint32 (shape: [N, depth]), ou [depth] pour un seul point
        """
        if not self.nodes:
            raise ValueError("Arbre vide - appeler train avant push")

        data = np.asarray(data)
        single = data.ndim == 1
        data = check_int_data(data[None, :] if single else data)
        if data.shape[1] != self.M:
            raise ValueError(f"Dimension des données ({data.shape[1]}) différente de M={self.M}")

        paths = np.zeros((data.shape[0], self.depth), dtype=np.uint32)

        for i, point in enumerate(data):
            node = self.nodes[0]
            d = 0
            while d < self.depth and not node.is_empty():
                best = node.filter.push_one(point)
                paths[i, d] = best
                d += 1

                if node.is_leaf():
                    break
                node = self.nodes[node.children_start + best]

        return paths[0] if single else paths

    # ------------------------------------------------------------------
    # Accesseurs
    # ------------------------------------------------------------------
    def get_ndims(self) -> int:
        return self.M

    def get_k(self) -> int:
        return self.K

    def get_depth(self) -> int:
        return self.depth

    def get_method(self) -> str:
        return self.method

    def get_verbosity(self) -> int:
        return self.verbosity

    def set_verbosity(self, verbosity: int) -> None:
        self.verbosity = int(verbosity)

    def get_max_niters(self) -> int:
        return self.max_niters

    def set_max_niters(self, max_niters: int) -> None:
        self.max_niters = int(max_niters)

    def get_root(self) -> Optional[HIKMNode]:
        return self.nodes[0] if self.nodes else None

    def get_node(self, index: int) -> HIKMNode:
        return self.nodes[index]

    def get_children(self, node: HIKMNode) -> List[HIKMNode]:
        """Enfants d'un nœud, dans l'ordre des étiquettes."""
        return [self.nodes[i] for i in node.children_range()]

    def get_node_count(self) -> int:
        return len(self.nodes)

    def get_leaf_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf())

    def get_statistics(self) -> Dict[str, Any]:
        """
        Calcule diverses statistiques sur l'arbre.

        Returns:
            Dict: Dictionnaire de statistiques
        """
        if not self.nodes:
            return {"error": "Arbre vide"}

        stats = {
            "node_count": len(self.nodes),
            "leaf_count": 0,
            "empty_count": 0,
            "max_depth": 0,
            "branching_factors": {},
            "avg_branching_factor": 0,
            "leaf_sizes": [],
            "avg_leaf_size": 0,
        }

        for node in self.nodes:
            stats["max_depth"] = max(stats["max_depth"], node.level)
            if node.is_empty():
                stats["empty_count"] += 1

            if node.is_leaf():
                stats["leaf_count"] += 1
                stats["leaf_sizes"].append(node.n_points)
            else:
                branch_count = node.children_count
                stats["branching_factors"][branch_count] = stats["branching_factors"].get(branch_count, 0) + 1

        if stats["leaf_count"] > 0:
            stats["avg_leaf_size"] = sum(stats["leaf_sizes"]) / stats["leaf_count"]

        internal_nodes = stats["node_count"] - stats["leaf_count"]
        if internal_nodes > 0:
            total_branches = sum(k * v for k, v in stats["branching_factors"].items())
            stats["avg_branching_factor"] = total_branches / internal_nodes

        return stats

    def __str__(self) -> str:
        """Représentation sous forme de chaîne pour le débogage."""
        if not self.nodes:
            return f"HIKMTree(M={self.M}, K={self.K}, depth={self.depth}, state={self.state})"

        stats = self.get_statistics()
        return (f"HIKMTree(M={self.M}, K={self.K}, depth={self.depth}, "
                f"method={self.method}, nodes={stats['node_count']}, "
                f"leaves={stats['leaf_count']}, empty={stats['empty_count']})")
