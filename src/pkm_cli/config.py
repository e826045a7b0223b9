"""Configuration management for pkm."""

import os
import json
from typing import Any, Dict, List


CONFIG_DIR = os.path.expanduser("~/.pkm")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")

PACKAGES_PATH_ENV = "PKM_PACKAGES_PATH"
SOURCES_ENV = "PKM_SOURCES"

DEFAULT_CONFIG: Dict[str, Any] = {
    "sources": [],
    "packages_path": "packages",
    "framework": "any",
    "dependency_behavior": "highest",
}


def ensure_config_exists():
    """Ensure the configuration directory and file exist."""
    if not os.path.exists(CONFIG_DIR):
        os.makedirs(CONFIG_DIR)

    if not os.path.exists(CONFIG_FILE):
        with open(CONFIG_FILE, "w") as f:
            json.dump(DEFAULT_CONFIG, f, indent=2)


def get_config() -> Dict[str, Any]:
    """Get the current configuration, with defaults for missing keys.

    Returns:
        dict: Current configuration.
    """
    ensure_config_exists()
    with open(CONFIG_FILE, "r") as f:
        stored = json.load(f)
    config = dict(DEFAULT_CONFIG)
    config.update(stored if isinstance(stored, dict) else {})
    return config


def update_config(updates: Dict[str, Any]):
    """Update the configuration with new values.

    Args:
        updates: Dictionary of configuration values to update.
    """
    config = get_config()
    config.update(updates)

    with open(CONFIG_FILE, "w") as f:
        json.dump(config, f, indent=2)


def get_sources() -> List[str]:
    """Package sources in priority order.

    ``PKM_SOURCES`` (separated by ``os.pathsep``) overrides the config file.
    """
    env_sources = os.environ.get(SOURCES_ENV)
    if env_sources:
        return [s for s in env_sources.split(os.pathsep) if s.strip()]
    return list(get_config().get("sources") or [])


def add_source(source: str, index: int = None) -> List[str]:
    """Add a package source; already configured sources are left in place."""
    sources = list(get_config().get("sources") or [])
    if source not in sources:
        if index is None:
            sources.append(source)
        else:
            sources.insert(index, source)
        update_config({"sources": sources})
    return sources


def remove_source(source: str) -> bool:
    """Remove a package source. Returns False if it was not configured."""
    sources = list(get_config().get("sources") or [])
    if source not in sources:
        return False
    sources.remove(source)
    update_config({"sources": sources})
    return True


def get_packages_path() -> str:
    """Packages root; ``PKM_PACKAGES_PATH`` overrides the config file."""
    return os.environ.get(PACKAGES_PATH_ENV) or get_config().get("packages_path") or DEFAULT_CONFIG["packages_path"]


def get_framework() -> str:
    return get_config().get("framework") or DEFAULT_CONFIG["framework"]


def get_dependency_behavior() -> str:
    return get_config().get("dependency_behavior") or DEFAULT_CONFIG["dependency_behavior"]
