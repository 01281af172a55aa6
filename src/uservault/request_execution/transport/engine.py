import asyncio
import ssl
from types import TracebackType
from typing_extensions import Self
from aiohttp import ClientSession, ClientTimeout, CookieJar, TCPConnector

from uservault.config.models.transport import TcpConnectionConfig, TlsConfig
from uservault.request_execution.models import TransportRequest, TransportResponse
from uservault.request_execution.transport.base import TransportEngineType, TransportEngine
from uservault.core.abstract_factory import TypeAbstractFactory


class TransportEngineFactory(TypeAbstractFactory[TransportEngineType, TransportEngine]):
    pass


@TransportEngineFactory.register(TransportEngineType.AIOHTTP)
class AiohttpEngine(TransportEngine):
    """
    TransportEngine adapter that uses aiohttp.ClientSession to make HTTP requests.
    The session owns a cookie jar so that server-rendered form sessions carry
    over from the page fetch to the component update (credentials: include).
    """

    def __init__(
        self,
        connector_config: TcpConnectionConfig | None = None,
        tls_config: TlsConfig | None = None,
        base_timeout: float = 20,
        user_agent: str | None = None,
        unsafe_cookies: bool = False,
    ) -> None:
        self._connector_config = connector_config or TcpConnectionConfig()
        self._tls_config = tls_config
        self._timeout = ClientTimeout(total=base_timeout)
        self._user_agent = user_agent
        self._unsafe_cookies = unsafe_cookies

        self._connector: TCPConnector | None = None
        self._session: ClientSession | None = None

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            raise ValueError(f"{__class__.__name__} aiohttp ClientSession not assigned")
        return self._session

    @session.setter
    def session(self, session: ClientSession | None) -> None:
        self._session = session

    def _build_ssl_context(self, cfg: TlsConfig) -> ssl.SSLContext | None:
        context = ssl.create_default_context(purpose=ssl.Purpose.SERVER_AUTH)

        if not cfg.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        if cfg.ca_bundle:
            context.load_verify_locations(cafile=str(cfg.ca_bundle))

        if cfg.client_cert:
            context.load_cert_chain(
                certfile=str(cfg.client_cert),
                keyfile=str(cfg.client_key) if cfg.client_key else None,
            )

        return context

    def _build_tcp_connector(self, cfg: TcpConnectionConfig) -> TCPConnector:
        kwargs = cfg.model_dump(exclude={"tls"})

        tls = cfg.tls or self._tls_config
        if tls and tls.enabled:
            kwargs["ssl"] = self._build_ssl_context(tls)

        return TCPConnector(**kwargs)

    async def __aenter__(self) -> Self:
        if self._connector is None or self._connector.closed:
            self._connector = self._build_tcp_connector(self._connector_config)

        headers = {"User-Agent": self._user_agent} if self._user_agent else None
        self.session = ClientSession(
            connector=self._connector,
            timeout=self._timeout,
            cookie_jar=CookieJar(unsafe=self._unsafe_cookies),
            headers=headers,
        )

        return self

    async def __aexit__(
        self,
        exc_type: BaseException | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self.session = None
        self._connector = None

    def cookie(self, name: str) -> str | None:
        if self._session is None:
            return None
        for morsel in self._session.cookie_jar:
            if morsel.key == name:
                return morsel.value
        return None

    async def send(self, request: TransportRequest) -> TransportResponse:
        if self._session is None:
            raise RuntimeError(
                "AiohttpEngine must be used as an async context manager"
            )

        extra: dict = {}
        if request.timeout:
            extra["timeout"] = ClientTimeout(total=request.timeout)

        try:
            async with self._session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                json=request.json,
                data=request.data,
                **extra,
            ) as response:
                body = await response.read()
                return TransportResponse(
                    status=response.status,
                    headers=response.headers,
                    body=body,
                    error=None,
                )
        except asyncio.TimeoutError as e:
            return TransportResponse(
                status=None,
                headers={},
                body=None,
                error=f"{type(e).__name__}: request timed out",
                exception=e,
                timed_out=True,
            )
        except Exception as e:
            return TransportResponse(
                status=None, headers={}, body=None, error=f"{type(e).__name__}: {e}", exception=e
            )
