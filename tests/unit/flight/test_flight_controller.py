"""Unit tests for FlightController coalescing, 429 backoff and network retry"""

import asyncio
import pytest

from uservault.core.exceptions import ApiError, NetworkFailure, RateLimited
from tests.fixtures.stack import build_flight, fast_flight_config
from tests.fixtures.transport import (
    broken_response,
    gated,
    json_response,
    timeout_response,
)


@pytest.mark.unit
@pytest.mark.flight
@pytest.mark.asyncio
class TestCoalescing:

    async def test_concurrent_identical_requests_share_one_call(self, engine):
        """
        GIVEN N concurrent callers requesting the same method and URL
        WHEN the single physical call completes
        THEN exactly one request reached the engine and every caller got the same value
        """
        gate = asyncio.Event()
        engine.route("GET", "timeline/feed", gated(json_response({"items": [1, 2]}), gate))
        flight, _, _ = build_flight(engine)

        tasks = [asyncio.create_task(flight.get("timeline/feed", {"filter": {"cursor": 0}})) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert len(engine.requests) == 1
        assert all(result == {"items": [1, 2]} for result in results)

    async def test_concurrent_identical_requests_share_one_error(self, engine):
        gate = asyncio.Event()
        engine.route("GET", "timeline/feed", gated(json_response({"message": "down"}, status=500), gate))
        flight, _, _ = build_flight(engine)

        tasks = [asyncio.create_task(flight.get("timeline/feed")) for _ in range(4)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert len(engine.requests) == 1
        assert all(isinstance(r, ApiError) and r.message == "down" for r in results)

    async def test_different_urls_are_not_coalesced(self, engine):
        engine.route("GET", "stories/feed", json_response({}))
        engine.route("GET", "timeline/feed", json_response({}))
        flight, _, _ = build_flight(engine)

        await asyncio.gather(flight.get("stories/feed"), flight.get("timeline/feed"))

        assert len(engine.requests) == 2

    async def test_different_query_strings_are_not_coalesced(self, engine):
        engine.route("GET", "profile/profile", json_response({}))
        flight, _, _ = build_flight(engine)

        await asyncio.gather(
            flight.get("profile/profile", {"id": "jane"}),
            flight.get("profile/profile", {"id": "john"}),
        )

        assert len(engine.requests) == 2

    async def test_different_bodies_are_not_coalesced(self, engine):
        """
        GIVEN two concurrent POSTs to one URL whose bodies differ
        WHEN both complete
        THEN each body reached the engine
        """
        gate = asyncio.Event()
        engine.route("POST", "follows/follow/user", gated(json_response({}), gate))
        flight, _, _ = build_flight(engine)

        tasks = [
            asyncio.create_task(flight.post("follows/follow/user", {"id": 1})),
            asyncio.create_task(flight.post("follows/follow/user", {"id": 2})),
        ]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert sorted(r.json["id"] for r in engine.requests) == [1, 2]

    async def test_equal_bodies_in_any_key_order_are_coalesced(self, engine):
        gate = asyncio.Event()
        engine.route("POST", "explore/people", gated(json_response({}), gate))
        flight, _, _ = build_flight(engine)

        tasks = [
            asyncio.create_task(flight.post("explore/people", {"query": "a", "page": 1})),
            asyncio.create_task(flight.post("explore/people", {"page": 1, "query": "a"})),
        ]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert len(engine.requests) == 1

    async def test_lingering_ticket_is_not_shared_across_sessions(self, engine, token):
        """
        GIVEN a finished ticket still lingering for the current token
        WHEN the token changes and the same URL is requested again
        THEN a new request is sent with the new token
        """
        engine.route("GET", "bootstrap/bootstrap", [json_response({"who": "first"}), json_response({"who": "second"})])
        flight, session, _ = build_flight(engine, config=fast_flight_config(ticket_linger=60.0))
        session.token = token

        first = await flight.get("bootstrap/bootstrap")
        session.token = token + "-other"
        second = await flight.get("bootstrap/bootstrap")
        flight.close()

        assert (first, second) == ({"who": "first"}, {"who": "second"})
        assert engine.requests[1].headers["Authorization"] == f"Bearer {token}-other"

    async def test_lingering_ticket_is_reused_within_one_session(self, engine, token):
        engine.route("GET", "bootstrap/bootstrap", [json_response({"who": "first"}), json_response({"who": "second"})])
        flight, session, _ = build_flight(engine, config=fast_flight_config(ticket_linger=60.0))
        session.token = token

        first = await flight.get("bootstrap/bootstrap")
        second = await flight.get("bootstrap/bootstrap")
        flight.close()

        assert first == second == {"who": "first"}
        assert len(engine.requests) == 1

    async def test_completed_results_are_not_cached(self, engine):
        engine.route("GET", "notifications/unread/count", [json_response({"count": 1}), json_response({"count": 2})])
        flight, _, _ = build_flight(engine)

        first = await flight.get("notifications/unread/count")
        second = await flight.get("notifications/unread/count")

        assert (first, second) == ({"count": 1}, {"count": 2})
        assert len(engine.requests) == 2

    async def test_coalesce_opt_out(self, engine):
        engine.route("POST", "messenger/send", json_response({"ok": True}))
        flight, _, _ = build_flight(engine)

        await asyncio.gather(
            flight.post("messenger/send", {"content": "a"}, coalesce=False),
            flight.post("messenger/send", {"content": "b"}, coalesce=False),
        )

        assert [r.json["content"] for r in engine.requests] == ["a", "b"]

    async def test_cancelled_caller_does_not_cancel_shared_call(self, engine):
        """
        GIVEN two callers sharing one in-flight request
        WHEN one of them is cancelled
        THEN the other still receives the result
        """
        gate = asyncio.Event()
        engine.route("GET", "stories/feed", gated(json_response({"stories": []}), gate))
        flight, _, _ = build_flight(engine)

        impatient = asyncio.create_task(flight.get("stories/feed"))
        patient = asyncio.create_task(flight.get("stories/feed"))
        await asyncio.sleep(0)
        impatient.cancel()
        gate.set()

        assert await patient == {"stories": []}
        with pytest.raises(asyncio.CancelledError):
            await impatient


@pytest.mark.unit
@pytest.mark.flight
@pytest.mark.asyncio
class TestRateLimitRetry:

    async def test_retry_after_is_honoured(self, engine):
        """
        GIVEN a 429 carrying Retry-After: 2 followed by a success
        WHEN the request is made
        THEN the controller waits 2 seconds, retries, and decays the delay after success
        """
        engine.route("GET", "timeline/feed", [
            json_response({}, status=429, headers={"Retry-After": "2"}),
            json_response({"ok": True}),
        ])
        flight, _, clock = build_flight(engine)

        result = await flight.get("timeline/feed")

        assert result == {"ok": True}
        assert len(engine.requests) == 2
        assert 2.0 in clock.sleeps
        assert flight.limiter.mandated_delay == pytest.approx(1.5)

    async def test_exponential_backoff_without_retry_after(self, engine):
        engine.route("GET", "timeline/feed", [
            json_response({}, status=429),
            json_response({}, status=429),
            json_response({"ok": True}),
        ])
        flight, _, clock = build_flight(engine)

        await flight.get("timeline/feed")

        assert clock.sleeps == [1.0, 2.0]
        assert len(engine.requests) == 3

    async def test_backoff_delay_is_bounded(self, engine):
        flight, _, _ = build_flight(engine, config=fast_flight_config(base_delay=1.0, max_delay=10.0))

        assert [flight.backoff_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    async def test_exhaustion_raises_rate_limited(self, engine):
        engine.route("GET", "timeline/feed", json_response({}, status=429))
        flight, _, _ = build_flight(engine)

        with pytest.raises(RateLimited) as exc_info:
            await flight.get("timeline/feed")

        assert len(engine.requests) == 3
        assert exc_info.value.attempts == 3
        assert "Rate limit exceeded" in str(exc_info.value)

    async def test_other_errors_surface_immediately(self, engine):
        engine.route("GET", "timeline/post/abc", json_response({"message": "Not found"}, status=404))
        flight, _, _ = build_flight(engine)

        with pytest.raises(ApiError) as exc_info:
            await flight.get("timeline/post/abc")

        assert exc_info.value.status == 404
        assert len(engine.requests) == 1

    async def test_success_decays_penalty_from_earlier_429(self, engine):
        engine.route("GET", "a", [json_response({}, status=429, headers={"Retry-After": "1"}), json_response({})])
        engine.route("GET", "b", json_response({}))
        flight, _, _ = build_flight(engine)

        await flight.get("a")
        await flight.get("b")

        assert flight.limiter.mandated_delay == pytest.approx(0.0)


@pytest.mark.unit
@pytest.mark.flight
@pytest.mark.asyncio
class TestNetworkRetry:

    async def test_transient_failures_are_retried(self, engine):
        engine.route("GET", "stories/feed", [timeout_response(), timeout_response(), json_response({"ok": 1})])
        flight, _, _ = build_flight(engine)

        assert await flight.get("stories/feed") == {"ok": 1}
        assert len(engine.requests) == 3

    async def test_transient_failures_surface_after_budget(self, engine):
        engine.route("GET", "stories/feed", timeout_response())
        flight, _, _ = build_flight(engine, config=fast_flight_config(network_max_attempts=2))

        with pytest.raises(NetworkFailure):
            await flight.get("stories/feed")

        assert len(engine.requests) == 2

    async def test_non_transient_failure_is_not_retried(self, engine):
        engine.route("GET", "stories/feed", broken_response())
        flight, _, _ = build_flight(engine)

        with pytest.raises(NetworkFailure):
            await flight.get("stories/feed")

        assert len(engine.requests) == 1

    async def test_retry_reads_the_current_token(self, engine, token):
        """
        GIVEN the session token changes between a failed attempt and its retry
        WHEN the retry is dispatched
        THEN it carries the new token
        """
        flight, session, _ = build_flight(engine)
        session.token = token
        replies = iter([timeout_response(), json_response({})])

        def respond(request):
            session.token = "new-token-0123456789"
            return next(replies)

        engine.route("GET", "me", respond)

        await flight.get("me")

        assert engine.requests[0].headers["Authorization"] == f"Bearer {token}"
        assert engine.requests[1].headers["Authorization"] == "Bearer new-token-0123456789"
