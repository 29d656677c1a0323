"""
Constructeur d'arbres HIKM.
Entraîne récursivement chaque nœud, partitionne ses données par cluster et
descend dans chaque cluster jusqu'à épuisement de la profondeur.
"""

import time
from typing import Any, Dict, Optional

import numpy as np

from hikm.builder.clustering import check_int_data
from hikm.builder.partition import copy_subset
from hikm.core.tree import HIKMNode, HIKMTree
from hikm.utils.config import ConfigManager
from hikm.utils.progress import ProgressSink


def build_node(tree: HIKMTree, data: np.ndarray, K: int, height: int,
               level: int = 0, slot: Optional[int] = None) -> int:
    """
    Construit un nœud et, récursivement, tout son sous-arbre.

    Les enfants sont réservés en un bloc contigu de l'arène puis construits
    par étiquette croissante. Le sous-ensemble d'un enfant n'est conservé que
    le temps de la construction de cet enfant.

    Args:
        tree: Arbre dont l'arène reçoit les nœuds
        data: Points arrivés à ce nœud (shape: [N, M])
        K: Nombre de clusters pour ce nœud (déjà borné par N)
        height: Nombre de niveaux restants, ce nœud compris (1 = feuille)
        level: Niveau du nœud (0 = racine)
        slot: Emplacement réservé dans l'arène (None = ajouter à la fin)

    Returns:
        int: Indice du nœud dans l'arène
    """
    node_filter = tree.new_filter()
    try:
        node_filter.init_rand_data(data, K)
        node_filter.train(data)
        labels = node_filter.push(data)
    except BaseException:
        # Le modèle n'est pas encore dans l'arène
        node_filter.delete()
        raise

    node = HIKMNode(node_filter, level=level, n_points=len(data))
    index = tree.store(node, slot)

    if height == 1:
        return index

    node.children_start = tree.reserve(K)
    node.children_count = K

    for k in range(K):
        partition, partition_n = copy_subset(data, labels, k)
        build_node(tree, partition, min(K, partition_n), height - 1,
                   level=level + 1, slot=node.children_start + k)
        del partition

        if tree.progress is not None and tree.verbosity > level:
            tree.progress(level, (k + 1) / K * 100)

    return index


def build_tree(
    data: np.ndarray,
    K: Optional[int] = None,
    depth: Optional[int] = None,
    method: Optional[str] = None,
    max_niters: Optional[int] = None,
    verbosity: Optional[int] = None,
    seed: Optional[int] = None,
    progress: Optional[ProgressSink] = None,
    config: Optional[Dict[str, Any]] = None,
    verbose: bool = True
) -> HIKMTree:
    """
    Construit un arbre HIKM en une seule fonction.

    Args:
        data: Points entiers à indexer (shape: [N, M])
        K: Nombre de clusters par nœud (facultatif, sinon configuration)
        depth: Profondeur de l'arbre (facultatif, sinon configuration)
        method: Méthode du k-means de chaque nœud (facultatif)
        max_niters: Nombre maximal d'itérations par nœud (facultatif)
        verbosity: Verbosité de la construction (facultatif)
        seed: Graine de l'initialisation (facultatif)
        progress: Récepteur de progression (facultatif)
        config: Configuration personnalisée (facultatif, sinon utilise config.yaml)
        verbose: Afficher les messages de progression

    Returns:
        HIKMTree: Arbre entraîné
    """
    data = check_int_data(data)

    if config is None:
        config = ConfigManager().config
    build_config = config.get("build_tree", {})

    K = K if K is not None else build_config.get("k", 10)
    depth = depth if depth is not None else build_config.get("depth", 3)

    tree = HIKMTree(method=method, max_niters=max_niters, verbosity=verbosity,
                    seed=seed, progress=progress, config=config)
    tree.init(data.shape[1], K, depth)

    if verbose:
        print(f"⏳ Construction de l'arbre HIKM avec K={K}, depth={depth}, "
              f"method={tree.method} sur {len(data):,} points (dim {data.shape[1]})...")

    start_time = time.time()
    tree.train(data)
    elapsed = time.time() - start_time

    if verbose:
        stats = tree.get_statistics()
        print(f"✓ Construction de l'arbre HIKM terminée en {elapsed:.2f}s")
        print(f"  → {stats['node_count']:,} nœuds, {stats['leaf_count']:,} feuilles")
        print(f"  → Facteur de branchement moyen: {stats['avg_branching_factor']:.2f}")
        if stats["empty_count"] > 0:
            print(f"  ⚠️ {stats['empty_count']} nœuds entraînés sur zéro point")

    return tree
