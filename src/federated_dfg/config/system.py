"""Locating and loading the protocol configuration file."""

import os
from pathlib import Path
from typing import Optional, Tuple

from .models import ProtocolConfig

CONFIG_ENV_VAR = "FEDERATED_DFG_CONFIG"


def resolve_config_path(explicit: Optional[Path] = None) -> Optional[Path]:
    """
    Resolve the config file path.

    An explicit path wins; otherwise FEDERATED_DFG_CONFIG is consulted. Relative
    environment values are resolved against the current working directory.
    Returns None when neither is set.
    """
    if explicit is not None:
        return Path(explicit).resolve()
    env_value = os.getenv(CONFIG_ENV_VAR)
    if not env_value:
        return None
    candidate = Path(env_value)
    if not candidate.is_absolute():
        candidate = (Path.cwd() / candidate).resolve()
    return candidate


def load_protocol_config(explicit: Optional[Path] = None) -> Tuple[ProtocolConfig, Optional[Path]]:
    """
    Load the protocol configuration.

    Returns:
        (config, resolved_path). Defaults are returned when no path is configured.

    Raises:
        FileNotFoundError: if a configured path does not exist.
        ValueError: if the JSON is invalid or fails validation.
    """
    path = resolve_config_path(explicit)
    if path is None:
        return ProtocolConfig(), None
    if not path.exists():
        raise FileNotFoundError(f"Protocol config not found at {path}")
    return ProtocolConfig.from_file(path), path
