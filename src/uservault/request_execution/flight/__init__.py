from uservault.request_execution.flight.controller import FlightController
from uservault.request_execution.flight.rate_limiter import AdaptiveRateLimiter
from uservault.request_execution.flight.tickets import TicketRegistry

__all__ = [
    "FlightController",
    "AdaptiveRateLimiter",
    "TicketRegistry",
]
