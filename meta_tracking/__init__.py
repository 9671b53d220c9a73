__version__ = "1.1.0"

from .config import TrackerConfig
from .conversions import ConversionTracker
from .errors import (
    ApiError,
    ConfigError,
    NetworkError,
    ParseError,
    TrackingError,
    ValidationError,
)
from .gtm import GTMTracker
from .hashing import hash_value, normalize_user_data
from .hybrid import HybridResult, HybridTracker
from .pixel import PixelTracker
from .registry import (
    clear_default_tracker,
    get_default_tracker,
    require_default_tracker,
    set_default_tracker,
)
from .schema import (
    ActionSource,
    Content,
    CustomData,
    EventData,
    EventResponse,
    Product,
    UserData,
)
from .validation import validate_config

__all__ = [
    "__version__",
    "ActionSource",
    "ApiError",
    "ConfigError",
    "Content",
    "ConversionTracker",
    "CustomData",
    "EventData",
    "EventResponse",
    "GTMTracker",
    "HybridResult",
    "HybridTracker",
    "NetworkError",
    "ParseError",
    "PixelTracker",
    "Product",
    "TrackerConfig",
    "TrackingError",
    "UserData",
    "ValidationError",
    "clear_default_tracker",
    "get_default_tracker",
    "hash_value",
    "normalize_user_data",
    "require_default_tracker",
    "set_default_tracker",
    "validate_config",
]
