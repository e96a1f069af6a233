from .config import EngineConfig, LogLevel, load_engine_config_from_env
from .enforcer import CoreEnforcer, Enforcer, InternalEnforcer, ManagementEnforcer
from .exceptions import (
    AdapterError,
    ConfigurationError,
    FieldIndexNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    PolicyEngineError,
    WatcherError,
)
from .functions import FunctionRegistry, generate_g_function
from .locks import ReadWriteLock
from .logging import (
    EnforcerLoggerAdapter,
    PolicyLogFormatter,
    get_enforcer_logger,
    preview_rules,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from .persist import (
    Adapter,
    FileAdapter,
    MemoryAdapter,
    PolicyChange,
    PolicyOperation,
    RedisWatcher,
    UpdatableWatcher,
    Watcher,
)
from .policy import FieldName, ModelDefinition, PolicyStore, Section
from .rbac import RoleManager

__version__ = "0.1.0"

__all__ = [
    'Enforcer',
    'ManagementEnforcer',
    'InternalEnforcer',
    'CoreEnforcer',
    'ModelDefinition',
    'PolicyStore',
    'Section',
    'FieldName',
    'RoleManager',
    'ReadWriteLock',
    'FunctionRegistry',
    'generate_g_function',
    'Adapter',
    'MemoryAdapter',
    'FileAdapter',
    'Watcher',
    'UpdatableWatcher',
    'RedisWatcher',
    'PolicyChange',
    'PolicyOperation',
    'EngineConfig',
    'LogLevel',
    'load_engine_config_from_env',
    'PolicyEngineError',
    'ConfigurationError',
    'InvalidArgumentError',
    'NotFoundError',
    'FieldIndexNotFoundError',
    'AdapterError',
    'WatcherError',
    'preview_rules',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'PolicyLogFormatter',
    'EnforcerLoggerAdapter',
    'setup_logging',
    'get_enforcer_logger',
]
