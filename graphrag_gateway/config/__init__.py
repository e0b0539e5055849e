from .loader import DEFAULT_CONFIG_TEMPLATE, load_config
from .models import (
    BackendSettings,
    GatewayConfig,
    GraphSettings,
    HarnessSettings,
    LLMSettings,
    QuerySettings,
    ServerSettings,
)

__all__ = [
    "DEFAULT_CONFIG_TEMPLATE",
    "BackendSettings",
    "GatewayConfig",
    "GraphSettings",
    "HarnessSettings",
    "LLMSettings",
    "QuerySettings",
    "ServerSettings",
    "load_config",
]
