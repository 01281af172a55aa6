import json
import logging
import re
from typing import Any, Callable
from urllib.parse import unquote

from uservault.config.models.livewire import FormFlowConfig, LivewireConfig
from uservault.core.exceptions import ApiError
from uservault.livewire.extraction import FormPage, extract_form_page
from uservault.livewire.outcomes import (
    FormOutcome,
    SessionExpiredOutcome,
    Success,
    Unrecognized,
    ValidationFailed,
)
from uservault.request_execution.flight import FlightController
from uservault.utils.common import dig


HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
UPDATE_ACCEPT = "application/json, text/html, application/xhtml+xml"
XSRF_COOKIE = "XSRF-TOKEN"

_EXPIRED_MARKERS = ("CSRF token mismatch", "Page Expired")


def first_error(errors: Any) -> tuple[str | None, str | None]:
    """(field, message) of the first entry in a validation error bag."""
    if not isinstance(errors, dict):
        return None, None
    for field, value in errors.items():
        if isinstance(value, list) and value:
            return field, str(value[0])
        if isinstance(value, str) and value:
            return field, value
    return None, None


def interpret_response(body: Any, flow: FormFlowConfig) -> FormOutcome:
    """
    Read a 2xx component update response, in priority order:
      1. effects.redirect to the flow's success page -> Success(token)
      2. first error in the new snapshot's memo.errors -> ValidationFailed
      3. first error in effects.errors -> ValidationFailed
      4. a success path anywhere in the raw body -> Success(token)
      5. otherwise Unrecognized
    """
    if isinstance(body, str):
        raw_text = body
        try:
            data = json.loads(body)
        except ValueError:
            data = None
    else:
        data = body
        raw_text = json.dumps(body)

    components = dig(data, "components")
    component = components[0] if isinstance(components, list) and components else {}
    effects = dig(component, "effects", {})
    segment = re.escape(flow.success_segment)

    redirect = dig(effects, "redirect")
    if isinstance(redirect, str):
        match = re.search(rf"{segment}/([^/?]+)", redirect)
        if match:
            return Success(match.group(1))

    new_snapshot = dig(component, "snapshot")
    if isinstance(new_snapshot, str):
        try:
            snapshot_data = json.loads(new_snapshot)
        except ValueError:
            snapshot_data = None
        field, message = first_error(dig(snapshot_data, "memo.errors"))
        if message:
            return ValidationFailed(message, field)

    field, message = first_error(dig(effects, "errors"))
    if message:
        return ValidationFailed(message, field)

    match = re.search(rf"{segment}(?:/|\\/)([a-zA-Z0-9+/=]+)", raw_text)
    if match:
        return Success(match.group(1))

    return Unrecognized()


class LivewireBridge:
    """
    Drives a server-rendered form through the component update protocol:
    GET the page, extract the CSRF token and component snapshot, then POST a
    simulated field update plus a submit call. Both requests share the
    engine's cookie jar, so the form session carries over.
    """

    def __init__(
        self,
        flight: FlightController,
        config: LivewireConfig | None = None,
        cookie_source: Callable[[str], str | None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._flight = flight
        self._config = config or LivewireConfig()
        self._cookie_source = cookie_source or flight.transport.engine.cookie
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def config(self) -> LivewireConfig:
        return self._config

    async def fetch_page(self, flow: FormFlowConfig) -> FormPage:
        url = self._config.page_url(flow)
        headers = {
            "Accept": HTML_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "User-Agent": self._config.user_agent,
        }

        try:
            page = await self._flight.get(url, headers=headers, skip_auth=True)
        except ApiError as exc:
            raise ApiError(
                exc.status,
                f"Failed to load {flow.page_path} page",
                endpoint=url,
                body_text=exc.body_text,
                content_type=exc.content_type,
            ) from exc

        if not isinstance(page, str):
            page = json.dumps(page)
        self._logger.debug(f"Loaded form page {url} ({len(page)} chars)")

        return extract_form_page(page, url, self._config.min_token_length, self._xsrf_token())

    def build_envelope(self, page: FormPage, flow: FormFlowConfig, value: str) -> dict[str, Any]:
        return {
            "components": [
                {
                    "snapshot": page.snapshot.raw,
                    "calls": [{"path": "", "method": flow.method, "params": []}],
                    "updates": {flow.field: value},
                }
            ]
        }

    def build_headers(self, page: FormPage) -> dict[str, str]:
        headers = {
            "Accept": UPDATE_ACCEPT,
            "Content-Type": "application/json",
            "X-Livewire": "true",
            "X-CSRF-TOKEN": page.csrf_token,
            "Origin": self._config.site_url,
            "Referer": page.url,
            "User-Agent": self._config.user_agent,
        }
        xsrf = self._xsrf_token() or page.xsrf_token
        if xsrf:
            headers["X-XSRF-TOKEN"] = xsrf
        return headers

    async def submit(self, page: FormPage, flow: FormFlowConfig, value: str) -> FormOutcome:
        try:
            body = await self._flight.post(
                self._config.update_url,
                body=self.build_envelope(page, flow, value),
                headers=self.build_headers(page),
                skip_auth=True,
                coalesce=False,
            )
        except ApiError as exc:
            return self.interpret_failure(exc, flow)

        outcome = interpret_response(body, flow)
        if isinstance(outcome, Unrecognized):
            self._logger.warning(
                f"No success redirect or errors from {flow.page_path}; assuming the email was sent"
            )
        else:
            self._logger.info(f"Form {flow.page_path} outcome: {type(outcome).__name__}")
        return outcome

    def interpret_failure(self, exc: ApiError, flow: FormFlowConfig) -> FormOutcome:
        """
        Non-2xx update responses: an expired form session becomes an outcome,
        a JSON message is surfaced as-is, anything else gets the flow's
        generic failure message.
        """
        text = exc.body_text or ""
        if exc.status == 419 or any(marker in text for marker in _EXPIRED_MARKERS):
            self._logger.warning(f"Form session expired on {flow.page_path} (status {exc.status})")
            return SessionExpiredOutcome()

        if "json" in exc.content_type.lower() and exc.message != f"API error: {exc.status}":
            raise exc

        raise ApiError(
            exc.status,
            flow.failure_message,
            endpoint=exc.endpoint,
            body_text=exc.body_text,
            content_type=exc.content_type,
        ) from exc

    async def send(self, flow: FormFlowConfig, value: str) -> FormOutcome:
        page = await self.fetch_page(flow)
        return await self.submit(page, flow, value)

    def _xsrf_token(self) -> str | None:
        value = self._cookie_source(XSRF_COOKIE)
        return unquote(value) if value else None
