from pathlib import Path
from typing import Any, Literal
from pydantic import Field, BaseModel


class TlsConfig(BaseModel):
    enabled: bool = False
    verify: bool = True
    ca_bundle: Path | None = None
    client_cert: Path | None = None
    client_key: Path | None = None


class TcpConnectionConfig(BaseModel):
    limit: int = 100
    limit_per_host: int = 0
    ttl_dns_cache: int = 300
    force_close: bool = False
    enable_cleanup_closed: bool = True
    tls: TlsConfig | None = None


class TransportConfig(BaseModel):
    """HTTP engine configuration"""
    engine: Literal["aiohttp"] = "aiohttp"
    base_timeout: float = Field(default=20.0, gt=0, description="Per-call timeout in seconds")
    user_agent: str | None = Field(default=None, description="Session-wide User-Agent header")
    unsafe_cookies: bool = Field(default=False, description="Accept cookies from IP-address hosts")
    tcp_connection: TcpConnectionConfig = Field(default_factory=TcpConnectionConfig)

    def to_runtime_args(self) -> dict[str, Any]:
        return {
            "connector_config": self.tcp_connection,
            "base_timeout": self.base_timeout,
            "user_agent": self.user_agent,
            "unsafe_cookies": self.unsafe_cookies,
        }
