from abc import ABC, abstractmethod
from typing import Any, Callable

from uservault.config.models.middleware import MiddlewareConfigModel
from uservault.config.models.transport import TransportConfig
from uservault.request_execution.middleware import MIDDLEWARE_FUNC, MiddlewareFactory, MiddlewareType
from uservault.request_execution.transport.base import TransportEngine, TransportEngineType
from uservault.request_execution.transport.engine import TransportEngineFactory


class RuntimeFactory(ABC):

    @staticmethod
    @abstractmethod
    def build_factory(cfg: Any, *args, **kwargs) -> Callable[[], Any]: ...


class TransportRuntimeFactory(RuntimeFactory):

    @staticmethod
    def build_factory(cfg: TransportConfig, user_agent: str | None = None) -> Callable[[], TransportEngine]:

        def factory() -> TransportEngine:
            config_kwargs = cfg.to_runtime_args()
            if user_agent and not config_kwargs.get("user_agent"):
                config_kwargs["user_agent"] = user_agent

            return TransportEngineFactory.create(TransportEngineType(cfg.engine), **config_kwargs)

        return factory


class MiddlewareRuntimeFactory(RuntimeFactory):

    @staticmethod
    def build_factory(cfg: MiddlewareConfigModel) -> Callable[[], MIDDLEWARE_FUNC]:

        def factory() -> MIDDLEWARE_FUNC:
            return MiddlewareFactory.create(MiddlewareType(cfg.type), **cfg.to_runtime_args())

        return factory

    @staticmethod
    def get_factories(mw_cfgs: list[MiddlewareConfigModel]) -> list[Callable[[], MIDDLEWARE_FUNC]]:

        return [MiddlewareRuntimeFactory.build_factory(cfg) for cfg in mw_cfgs]
