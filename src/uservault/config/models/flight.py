from pydantic import BaseModel, Field


class FlightConfig(BaseModel):
    """
    Pacing, backoff and retry policy of the FlightController.
    All durations are in seconds.
    """
    min_spacing: float = Field(
        default=0.1, ge=0,
        description="No request leaves sooner than this after the previous one"
    )
    base_delay: float = Field(
        default=1.0, ge=0,
        description="First 429 backoff when the server sends no Retry-After"
    )
    max_delay: float = Field(default=10.0, ge=0, description="Upper bound for 429 backoff")
    max_attempts: int = Field(default=3, ge=1, description="Physical attempts per request under 429")
    decay_step: float = Field(
        default=0.5, ge=0,
        description="Mandated delay removed after every non-429 response"
    )
    ticket_linger: float = Field(
        default=1.0, ge=0,
        description="How long a finished request keeps absorbing identical callers"
    )
    network_max_attempts: int = Field(default=3, ge=1, description="Attempts on transient network failure")
    network_base_delay: float = Field(default=0.25, ge=0)
    network_max_delay: float = Field(default=4.0, ge=0)
