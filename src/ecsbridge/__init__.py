"""Amazon ECS Bridge - query Amazon ECS structures as tabular records."""

__version__ = "1.0.0"

from .bridge.adapter import EcsBridgeAdapter  # noqa: E402
from .cli import app  # noqa: E402
from .config import BridgeConfig, load_config  # noqa: E402
from .models import BridgeRequest, Count, Record, RecordList  # noqa: E402

__all__ = [
    "app",
    "EcsBridgeAdapter",
    "BridgeConfig",
    "load_config",
    "BridgeRequest",
    "Count",
    "Record",
    "RecordList",
]
