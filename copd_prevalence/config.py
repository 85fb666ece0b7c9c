"""
Configuration loader for the COPD prevalence pipeline.
Loads YAML config and provides path helpers.
"""
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from copd_prevalence.common.paths import find_project_root


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to config/config_default.yaml

    Returns:
        Dictionary containing all configuration settings
    """
    if config_path is None:
        config_path = get_project_root() / "config" / "config_default.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    return config or {}


def get_project_root() -> Path:
    """Get the project root directory (the one containing `config/`)."""
    return find_project_root(Path(__file__).parent.parent)


def get_data_path(relative_path: str) -> Path:
    """
    Get absolute path for a data file.

    Args:
        relative_path: Path relative to project root (e.g., "data/raw/file.xlsx")

    Returns:
        Absolute Path object
    """
    return get_project_root() / relative_path
