from typing import Any, Optional

import yaml

VALID_MODES = ("prod", "debug")


def load_config(config_file: str):
    """
    Load configuration settings from a YAML file.

    Args:
        config_file (str): The file path to the YAML configuration file.

    Returns:
        dict: A dictionary containing the parsed configuration data.

    Raises:
        FileNotFoundError: If the specified configuration file is not found.
        ValueError: If the YAML can't be parsed or isn't a mapping.

    Example Usage:
        config = load_config("config.yaml")
        print(config["socials"])  # Access specific configuration values.

    Notes:
        - Uses `yaml.safe_load`, so no arbitrary Python objects are built.
        - See config.sample.yaml for every supported key.
    """
    try:
        with open(config_file, encoding="utf-8") as file:
            config = yaml.safe_load(file)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file {config_file} not found.")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file: {e}")

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration file {config_file} must contain a mapping at the top level.")
    return config


def resolve_mode(config: dict, override: Optional[str] = None) -> str:
    """Pick "prod" or "debug" from the CLI override or script.mode (defaults to prod)."""
    script = config.get("script", {}) or {}
    mode = str(override or script.get("mode") or "prod").lower()
    return mode if mode in VALID_MODES else "prod"


def platform_section(config: dict, name: str, mode: str) -> dict[str, Any]:
    """
    Return the credentials block for a platform.

    Accepts both the per-mode layout (bluesky: {prod: {...}, debug: {...}})
    and a flat block (bluesky: {handle: ...}).
    """
    section = config.get(name) or {}
    if not isinstance(section, dict):
        return {}
    if any(m in section for m in VALID_MODES):
        return dict(section.get(mode) or {})
    return dict(section)
