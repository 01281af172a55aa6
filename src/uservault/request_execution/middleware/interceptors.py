# Wrap the downstream call and inspect the response body
import json

from uservault.request_execution.models import RequestExchange
from uservault.request_execution.middleware.pipeline import (
    NEXT_CALL,
    Middleware,
    MiddlewareFactory,
    MiddlewareType,
)


@MiddlewareFactory.register(MiddlewareType.JSON_BODY)
class JsonResponseMiddleware(Middleware):
    """
    Decodes the response body into RequestExchange.body_text and, when the
    response declares a JSON content type, parses it into json_body.
    A body that claims to be JSON but does not parse is kept as text and the
    parse error is recorded in metadata["json"].
    """

    async def __call__(self, request_exchange: RequestExchange, next_call: NEXT_CALL) -> RequestExchange:
        result = await next_call(request_exchange)

        if result.body is None:
            return result

        result.body_text = result.body.decode("utf-8", errors="replace")

        if not result.is_json:
            result.metadata["json"] = {"valid": None, "error": None}
            return result

        try:
            result.json_body = json.loads(result.body_text) if result.body_text.strip() else None
            result.metadata["json"] = {"valid": True, "error": None}
        except json.JSONDecodeError as je:
            result.json_body = None
            result.metadata["json"] = {"valid": False, "error": str(je)}

        return result
