"""Configuration loading."""

import os

import yaml

DEFAULT_CONFIG_FILE = "dsgen.yaml"


def load_config(config_path=None):
    """Load configuration from a YAML file, merged over the defaults.

    A missing file (or ``None``) yields the defaults unchanged.
    """
    defaults = {
        "state_dir": ".dsgen",
        "default_key_field": "ItemNo",
        "default_prefix": "PROJECT_",
        "default_suffix": "_Datasheet",
        "output_extension": ".xlsx",
        "output_dir": ".",
        "log_level": "INFO",
    }
    if config_path and os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
        defaults.update(user_config)
    return defaults
