from uservault.config.models.client import ClientConfig, DEFAULT_API_BASE_URL
from uservault.config.models.flight import FlightConfig
from uservault.config.models.livewire import FormFlowConfig, LivewireConfig
from uservault.config.models.middleware import (
    LoggingMiddlewareModel,
    MiddlewareConfigModel,
    SimpleMiddlewareModel,
)
from uservault.config.models.transport import TcpConnectionConfig, TlsConfig, TransportConfig

__all__ = [
    "ClientConfig",
    "DEFAULT_API_BASE_URL",
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
