from hearth._async._client import AsyncOfflineClient as AsyncOfflineClient
from hearth._async._mock import MockAsyncTransport as MockAsyncTransport
from hearth._async._storages import (
    AsyncBaseStorage as AsyncBaseStorage,
    AsyncCache as AsyncCache,
    AsyncFileStorage as AsyncFileStorage,
    AsyncInMemoryStorage as AsyncInMemoryStorage,
    AsyncSQLiteStorage as AsyncSQLiteStorage,
)
from hearth._async._strategies import AsyncStrategyExecutor as AsyncStrategyExecutor
from hearth._async._transports import AsyncOfflineTransport as AsyncOfflineTransport
from hearth._async._worker import (
    CLEAR_CACHE as CLEAR_CACHE,
    SKIP_WAITING as SKIP_WAITING,
    AsyncOfflineWorker as AsyncOfflineWorker,
    WorkerState as WorkerState,
)
from hearth._config import OfflineConfig as OfflineConfig, get_default_config as get_default_config
from hearth._exceptions import (
    ConfigurationError as ConfigurationError,
    HearthError as HearthError,
    InstallError as InstallError,
)
from hearth._models import CachedResponse as CachedResponse
from hearth._notifications import (
    NotificationOptions as NotificationOptions,
    parse_push_payload as parse_push_payload,
    resolve_click_url as resolve_click_url,
    url_base64_to_bytes as url_base64_to_bytes,
)
from hearth._responses import (
    offline_json_response as offline_json_response,
    offline_text_response as offline_text_response,
)
from hearth._routing import (
    Destination as Destination,
    Strategy as Strategy,
    classify as classify,
    get_destination as get_destination,
)
from hearth._serializers import (
    BaseSerializer as BaseSerializer,
    JSONSerializer as JSONSerializer,
    MsgpackSerializer as MsgpackSerializer,
)
from hearth._utils import BaseClock as BaseClock, Clock as Clock

__all__ = (
    # Clients and transports
    "AsyncOfflineClient",
    "AsyncOfflineTransport",
    "MockAsyncTransport",
    # Worker
    "AsyncOfflineWorker",
    "AsyncStrategyExecutor",
    "WorkerState",
    "SKIP_WAITING",
    "CLEAR_CACHE",
    # Routing
    "Strategy",
    "Destination",
    "classify",
    "get_destination",
    # Storages
    "AsyncBaseStorage",
    "AsyncCache",
    "AsyncInMemoryStorage",
    "AsyncFileStorage",
    "AsyncSQLiteStorage",
    # Serializers
    "BaseSerializer",
    "JSONSerializer",
    "MsgpackSerializer",
    # Models and responses
    "CachedResponse",
    "offline_json_response",
    "offline_text_response",
    # Notifications
    "NotificationOptions",
    "parse_push_payload",
    "resolve_click_url",
    "url_base64_to_bytes",
    # Configuration
    "OfflineConfig",
    "get_default_config",
    # Clocks
    "BaseClock",
    "Clock",
    # Exceptions
    "HearthError",
    "InstallError",
    "ConfigurationError",
)

__version__ = "0.1.0"
