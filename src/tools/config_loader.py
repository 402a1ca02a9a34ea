"""
Configuration loader for clustering profiles and environment variables.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from ..spatial.clustering import ClusteringConfig


DEFAULT_PROFILE = "default"
PROFILE_ENV_VAR = "DBSCAN_PROFILE"


class ConfigLoader:
    """Load and manage configuration from YAML files and environment."""

    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"

    @classmethod
    def available_profiles(cls) -> list:
        return sorted(f.stem for f in cls.CONFIG_DIR.glob("*.yaml"))

    @classmethod
    def load_profile(cls, profile_name: str = DEFAULT_PROFILE) -> Dict[str, Any]:
        """
        Load a clustering profile.

        Args:
            profile_name: Name of the profile (default, dense-urban, sparse-rural)

        Returns:
            Dictionary with configuration values (empty for an empty file)

        Raises:
            FileNotFoundError: If profile doesn't exist
            ValueError: If the file is not valid YAML or its top level is not a mapping
        """
        profile_path = cls.CONFIG_DIR / f"{profile_name}.yaml"

        if not profile_path.exists():
            raise FileNotFoundError(
                f"Profile '{profile_name}' not found. Available profiles: {', '.join(cls.available_profiles())}"
            )

        try:
            with open(profile_path, "r") as f:
                profile = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Profile '{profile_name}' is not valid YAML: {exc}") from exc

        if profile is None:
            return {}
        if not isinstance(profile, dict):
            raise ValueError(
                f"Profile '{profile_name}' must be a mapping, got {type(profile).__name__}"
            )
        return profile

    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from the DBSCAN_PROFILE environment variable."""
        return os.getenv(PROFILE_ENV_VAR)

    @classmethod
    def load_default_or_env_profile(cls) -> Dict[str, Any]:
        """
        Load the profile named by DBSCAN_PROFILE, or the default profile.

        Returns:
            Configuration dictionary
        """
        profile = cls.get_profile_from_env() or DEFAULT_PROFILE
        return cls.load_profile(profile)


def get_config() -> Dict[str, Any]:
    """Convenience function to get current configuration."""
    return ConfigLoader.load_default_or_env_profile()


def load_clustering_config(profile_name: Optional[str] = None) -> ClusteringConfig:
    """
    Build a :class:`ClusteringConfig` from a profile's ``clustering`` section.

    Falls back to DBSCAN_PROFILE, then the default profile, when
    ``profile_name`` is None.

    Raises:
        FileNotFoundError: If the profile doesn't exist
        ValueError: If the profile or its ``clustering`` section is malformed
    """
    if profile_name is None:
        profile = get_config()
    else:
        profile = ConfigLoader.load_profile(profile_name)

    section = profile.get("clustering")
    if section is None:
        return ClusteringConfig()
    if not isinstance(section, dict):
        raise ValueError(f"'clustering' section must be a mapping, got {type(section).__name__}")
    return ClusteringConfig.from_mapping(section)
