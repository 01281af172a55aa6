from typing import Annotated, Mapping, Union
from pydantic import BaseModel, Field, field_validator

from uservault.config.models.flight import FlightConfig
from uservault.config.models.livewire import LivewireConfig
from uservault.config.models.middleware import LoggingMiddlewareModel, SimpleMiddlewareModel
from uservault.config.models.transport import TransportConfig
from uservault.config.preprocessor import EnvironmentOverridePreprocessor


DEFAULT_API_BASE_URL = "https://uservault.net/api"
BASE_URL_ENV = "USERVAULT_API_BASE_URL"

ENV_VARIABLES = {
    BASE_URL_ENV: "base_url",
    "USERVAULT_DEVICE_NAME": "device_name",
    "USERVAULT_SITE_URL": "livewire.site_url",
    "USERVAULT_TIMEOUT": "transport.base_timeout",
    "USERVAULT_MIN_SPACING": "flight.min_spacing",
}


MiddlewareConfigUnion = Annotated[
    Union[LoggingMiddlewareModel, SimpleMiddlewareModel],
    Field(discriminator="type"),
]


class ClientConfig(BaseModel):
    """Root configuration of a UserVaultClient"""
    base_url: str = Field(default=DEFAULT_API_BASE_URL, description="JSON API base URL")
    device_name: str = Field(default="mobile app (python)", description="Sent with token requests")
    profile_probe_marker: str = Field(
        default="/profile",
        description="401s from endpoints containing this marker never tear down the session"
    )
    transport: TransportConfig = Field(default_factory=TransportConfig)
    flight: FlightConfig = Field(default_factory=FlightConfig)
    livewire: LivewireConfig = Field(default_factory=LivewireConfig)
    middleware: list[MiddlewareConfigUnion] = Field(
        default_factory=lambda: [LoggingMiddlewareModel(), SimpleMiddlewareModel(type="timing")]
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an absolute http(s) URL, got {v!r}")
        return v.rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "ClientConfig":
        """Defaults, filled from the USERVAULT_* variables in ENV_VARIABLES. Explicit overrides win."""
        data = EnvironmentOverridePreprocessor(ENV_VARIABLES, environ).process(dict(overrides))
        return cls.model_validate(data)
