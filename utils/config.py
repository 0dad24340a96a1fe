import os

import yaml

API_URL_ENV = "BLOGSYNC_API_URL"

DEFAULT_CONFIG = {
    "script": {
        "log_file_name": "blogsync",
        "data_dir": "./data",
        "status_file": "./status.json",
    },
    "api": {
        "base_url": "http://localhost:5001/api/blogs",
        "timeout": 10,
        "user_agent": "blogsync/1.0",
    },
    "connectivity": {
        "start_online": True,
        "probe_interval": 0,
    },
}


def load_config(config_file: str):
    """
    Load configuration settings from a YAML file.

    The parsed YAML is layered over DEFAULT_CONFIG one section deep, so a
    config file only needs the keys it wants to change. The API base URL can
    also be overridden with the BLOGSYNC_API_URL environment variable.

    Args:
        config_file (str): The file path to the YAML configuration file.

    Returns:
        dict: A dictionary containing the merged configuration data.

    Raises:
        Exception: If the file is missing or is not valid YAML.

    Example Usage:
        config = load_config("config/config.yaml")
        print(config["api"]["base_url"])
    """
    try:
        with open(config_file) as file:
            loaded = yaml.safe_load(file) or {}
    except FileNotFoundError:
        raise Exception(f"Configuration file {config_file} not found.")
    except yaml.YAMLError as e:
        raise Exception(f"Error parsing YAML file: {e}")

    if not isinstance(loaded, dict):
        raise Exception(f"Configuration file {config_file} must contain a mapping at the top level.")

    return merge_config(loaded)


def merge_config(overrides: dict) -> dict:
    """Layer `overrides` on top of DEFAULT_CONFIG and apply environment overrides."""
    config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values

    env_url = os.getenv(API_URL_ENV, "").strip()
    if env_url:
        config["api"]["base_url"] = env_url

    return config
