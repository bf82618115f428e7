"""Dispatch loop configuration.

Controls send timeouts, claim leases, batch size and circuit breaker
behaviour. All settings can be overridden via ``DISPATCH_*`` environment
variables.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upper bound on the mark_fired round trip after a send (database command timeout)
MARK_MARGIN_SECONDS = 30


class DispatchConfig(BaseSettings):
    """Configuration for the alert dispatch loop."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        extra="ignore",
    )

    send_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Upper bound on one notification send; a timeout counts as failure",
    )
    claim_timeout_seconds: int = Field(
        default=300,
        ge=30,
        description="Age after which an unfired claim is treated as abandoned",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum alerts claimed per tick",
    )
    circuit_breaker_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive send failures before the circuit opens",
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=5.0,
        description="Seconds before the circuit breaker retries after opening",
    )

    @property
    def claim_timeout_ms(self) -> int:
        return self.claim_timeout_seconds * 1000

    @model_validator(mode="after")
    def check_lease_outlives_send(self) -> "DispatchConfig":
        """A claim must not expire while its send and mark are still in flight."""
        minimum = self.send_timeout_seconds + MARK_MARGIN_SECONDS
        if self.claim_timeout_seconds <= minimum:
            raise ValueError(
                f"claim_timeout_seconds ({self.claim_timeout_seconds}) must exceed "
                f"send_timeout_seconds + {MARK_MARGIN_SECONDS} ({minimum})"
            )
        return self
