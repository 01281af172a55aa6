from uservault.config.loader import ConfigLoader
from uservault.config.preprocessor import (
    ConfigPreprocessor,
    ConfigValue,
    EnvironmentOverridePreprocessor,
    EnvironmentPreprocessor,
    OverlayPreprocessor,
)
from uservault.config.models import (
    ClientConfig,
    FlightConfig,
    FormFlowConfig,
    LivewireConfig,
    LoggingMiddlewareModel,
    MiddlewareConfigModel,
    SimpleMiddlewareModel,
    TcpConnectionConfig,
    TlsConfig,
    TransportConfig,
)

__all__ = [
    "ConfigLoader",
    "ConfigPreprocessor",
    "ConfigValue",
    "EnvironmentOverridePreprocessor",
    "EnvironmentPreprocessor",
    "OverlayPreprocessor",
    "ClientConfig",
    "FlightConfig",
    "FormFlowConfig",
    "LivewireConfig",
    "LoggingMiddlewareModel",
    "MiddlewareConfigModel",
    "SimpleMiddlewareModel",
    "TcpConnectionConfig",
    "TlsConfig",
    "TransportConfig",
]
