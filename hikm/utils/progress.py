"""
Récepteurs de progression pour la construction des arbres HIKM.

Un récepteur est un simple appelable ``(level, percent)`` : le constructeur
l'appelle après chaque branche terminée. Il ne fait qu'observer et n'a aucun
effet sur le résultat de l'entraînement.
"""

from typing import Callable, Dict, Optional

from tqdm.auto import tqdm

ProgressSink = Callable[[int, float], None]


class PrintProgress:
    """Affiche une ligne par branche terminée."""

    def __call__(self, level: int, percent: float) -> None:
        print(f"  → hikmeans: branche au niveau {level}: {percent:6.1f} % terminé")


class TqdmProgress:
    """
    Une barre tqdm par niveau de l'arbre.

    La barre d'un niveau est fermée lorsqu'elle atteint 100 %, puis recréée
    à la prochaine notification pour ce niveau (nœud frère suivant).
    """

    def __init__(self, **tqdm_kwargs):
        self.tqdm_kwargs = tqdm_kwargs
        self.bars: Dict[int, tqdm] = {}

    def __call__(self, level: int, percent: float) -> None:
        bar = self.bars.get(level)
        if bar is None:
            bar = tqdm(total=100.0, desc=f"Niveau {level}", position=level,
                       leave=(level == 0), **self.tqdm_kwargs)
            self.bars[level] = bar

        bar.update(percent - bar.n)

        if percent >= 100.0:
            bar.close()
            del self.bars[level]

    def close(self) -> None:
        """Ferme toutes les barres encore ouvertes."""
        for bar in self.bars.values():
            bar.close()
        self.bars.clear()


def make_progress(name: Optional[str]) -> Optional[ProgressSink]:
    """
    Crée un récepteur de progression à partir de son nom de configuration.

    Args:
        name: "print", "tqdm" ou "none" (None équivaut à "none")

    Returns:
        Le récepteur, ou None si aucune progression n'est souhaitée
    """
    if name is None or name == "none":
        return None
    if name == "print":
        return PrintProgress()
    if name == "tqdm":
        return TqdmProgress()
    raise ValueError(f"Récepteur de progression inconnu: {name!r} (attendu 'print', 'tqdm' ou 'none')")
