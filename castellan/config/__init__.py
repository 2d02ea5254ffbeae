from .loader import load_config
from .models import CastellanConfig, PolicyConfig, StoreConfig

__all__ = [
    "CastellanConfig",
    "PolicyConfig",
    "StoreConfig",
    "load_config",
]
