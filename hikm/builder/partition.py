"""
Partitionnement des données d'un nœud par étiquette de cluster.
"""

from typing import Tuple

import numpy as np


def copy_subset(data: np.ndarray, labels: np.ndarray, label: int) -> Tuple[np.ndarray, int]:
    """
    Copie les points portant une étiquette donnée dans un nouveau tableau.

    Les entrées ne sont pas modifiées et l'ordre relatif d'origine est conservé.
    Aucune correspondance n'est pas une erreur : on obtient un tableau (0, M).

    Args:
        data: Points du nœud (shape: [N, M])
        labels: Étiquette de chaque point (shape: [N])
        label: Étiquette à extraire

    Returns:
        Tuple[np.ndarray, int]: (sous-ensemble contigu, nombre de points copiés)
    """
    labels = np.asarray(labels)
    if labels.shape[0] != data.shape[0]:
        raise ValueError(f"{labels.shape[0]} étiquettes pour {data.shape[0]} points")

    # L'indexation booléenne produit déjà une copie
    subset = np.ascontiguousarray(data[labels == label])
    return subset, int(subset.shape[0])
