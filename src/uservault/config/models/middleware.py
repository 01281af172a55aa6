from pydantic import BaseModel
from typing import Literal, TypeVar, Generic, Any


T = TypeVar("T", bound=str)


class MiddlewareConfigModel(BaseModel, Generic[T]):
    type: T

    def to_runtime_args(self) -> dict[str, Any]:
        return {}


class SimpleMiddlewareModel(MiddlewareConfigModel):
    """Observer middleware that takes no arguments"""
    type: Literal["timing"]


class LoggingMiddlewareModel(MiddlewareConfigModel):
    """Request/response trace logging"""
    type: Literal["logging"] = "logging"
    body_preview: int = 500

    def to_runtime_args(self) -> dict[str, Any]:
        return {"body_preview": self.body_preview}
