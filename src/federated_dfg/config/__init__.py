from .models import DecryptingRole, HEParameters, ProtocolConfig
from .system import CONFIG_ENV_VAR, load_protocol_config, resolve_config_path

__all__ = [
    "DecryptingRole",
    "HEParameters",
    "ProtocolConfig",
    "CONFIG_ENV_VAR",
    "load_protocol_config",
    "resolve_config_path",
]
