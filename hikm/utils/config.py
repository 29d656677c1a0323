"""
Module de gestion de la configuration pour HIKM.
Centralise le chargement et l'accès à la configuration YAML.
"""

import copy
import os
import yaml

# Chemin par défaut du fichier de configuration
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "config.yaml")

# Configuration par défaut
DEFAULT_CONFIG = {
    "build_tree": {
        "k": 10,
        "depth": 3,
        "method": "lloyd",   # ou "elkan", "faiss"
        "max_niters": 200,
        "verbosity": 0,
        "seed": None,        # None = graine aléatoire à chaque entraînement
    },
    "progress": {
        "sink": "print",     # ou "tqdm", "none"
    },
}

class ConfigManager:
    """Gestionnaire de configuration pour HIKM."""

    def __init__(self, config_path=None):
        """
        Initialise le gestionnaire de configuration.

        Paramètres :
            config_path: Chemin vers le fichier de configuration YAML.
                         Si None, utilise le chemin par défaut.
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.config = self.load_config()

    def load_config(self):
        """
        Charge la configuration depuis le fichier YAML.

        Retourne :
            Dict: La configuration chargée, ou la configuration par défaut en cas d'erreur.
        """
        try:
            with open(self.config_path, "r") as f:
                config = yaml.safe_load(f) or {}

            if not isinstance(config, dict):
                raise ValueError(f"contenu YAML inattendu ({type(config).__name__})")

            # Vérifier et compléter la configuration
            self._ensure_complete_config(config)

            return config
        except (OSError, yaml.YAMLError, ValueError) as e:
            print(f"⚠️ Erreur lors du chargement de la configuration: {str(e)}")
            print(f"⚠️ Utilisation des paramètres par défaut")
            return copy.deepcopy(DEFAULT_CONFIG)

    def _ensure_complete_config(self, config):
        """
        S'assure que la configuration contient toutes les sections nécessaires.
        Complète avec les valeurs par défaut si nécessaire.

        Paramètres :
            config: Configuration à vérifier et compléter.
        """
        for section, default_values in DEFAULT_CONFIG.items():
            if not isinstance(config.get(section), dict):
                config[section] = dict(default_values)
            else:
                for key, value in default_values.items():
                    if key not in config[section]:
                        config[section][key] = value

    def get_section(self, section):
        """
        Récupère une section complète de la configuration.

        Paramètres :
            section: Nom de la section à récupérer.

        Retourne :
            Dict: La section demandée, ou un dictionnaire vide si la section n'existe pas.
        """
        return self.config.get(section, {})

    def get(self, section, key, default=None):
        """
        Récupère une valeur spécifique de la configuration.

        Paramètres :
            section: La section contenant la clé.
            key: La clé à récupérer.
            default: Valeur par défaut si la clé n'existe pas.

        Retourne :
            La valeur associée à la clé, ou la valeur par défaut si la clé n'existe pas.
        """
        section_data = self.get_section(section)
        return section_data.get(key, default)

    def reload(self, config_path=None):
        """
        Recharge la configuration depuis un nouveau fichier.

        Paramètres :
            config_path: Nouveau chemin de configuration. Si None, utilise le chemin actuel.
        """
        if config_path:
            self.config_path = config_path
        self.config = self.load_config()

    def __str__(self):
        """Représentation de la configuration pour le débogage."""
        return f"Configuration chargée depuis: {self.config_path}"

def resolve_section(config, section):
    """
    Récupère une section depuis une configuration explicite (dictionnaire)
    ou, à défaut, depuis le fichier YAML par défaut.

    Paramètres :
        config: Dictionnaire de configuration (mêmes sections que config.yaml) ou None.
        section: Nom de la section.

    Retourne :
        Dict: La section, complétée par les valeurs par défaut.
    """
    if config is None:
        return ConfigManager().get_section(section)
    values = dict(DEFAULT_CONFIG.get(section, {}))
    # Une section vide dans le YAML (``progress:``) vaut None
    values.update(config.get(section) or {})
    return values
