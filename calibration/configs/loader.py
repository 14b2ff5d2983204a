"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates that all required fields are present.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

logger = logging.getLogger(__name__)


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is empty
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")

    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    required_sections = ["global", "data", "optimization", "evaluation"]

    for section in required_sections:
        if section not in config:
            issues.append(f"Missing required section: {section}")

    if "data" in config:
        data = config["data"]
        if "matrix" not in data or "path" not in data.get("matrix", {}):
            issues.append("Missing data.matrix.path")
        if "observations" not in data or "storage_path" not in data.get("observations", {}):
            issues.append("Missing data.observations.storage_path")

    if "optimization" in config:
        opt = config["optimization"]
        if opt.get("iterations", 1000) < 0:
            issues.append(f"optimization.iterations must be >= 0, got {opt['iterations']}")
        if opt.get("step_size", 0.5) <= 0:
            issues.append(f"optimization.step_size must be > 0, got {opt['step_size']}")
        if opt.get("motion_limit", 20) < 0:
            issues.append(f"optimization.motion_limit must be >= 0, got {opt['motion_limit']}")
        for key in ["priority_phase_fraction", "priority_probability"]:
            value = opt.get(key, 0.5)
            if not 0 <= value <= 1:
                issues.append(f"optimization.{key} must be in [0, 1], got {value}")
        if not isinstance(opt.get("priority_indices", []), list):
            issues.append("optimization.priority_indices must be a list")

    if "global" in config:
        if "random_seed" not in config["global"]:
            issues.append("Missing global.random_seed (required for reproducibility)")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "optimization.step_size")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value
