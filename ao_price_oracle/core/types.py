"""Shared lightweight types to keep module interfaces explicit and typed."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ao_price_oracle.core.errors import CycleError


class CycleStage(str, Enum):
    """Stages an update cycle moves through."""

    IDLE = "idle"
    FETCHING = "fetching"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Tag:
    """Name/value metadata pair attached to a submitted message."""

    name: str
    value: str


@dataclass(frozen=True, slots=True)
class PriceRecord:
    """Validated price read from the latest ledger record."""

    value: float
    timestamp: datetime
    source_transaction_id: str
    data_feed_id: str = "AO"
    data_service_id: str | None = None
    signer_address: str | None = None
    is_signature_valid: bool | None = None
    metadata: dict[str, Any] | None = field(default=None, hash=False, compare=False)


@dataclass(frozen=True, slots=True)
class UpdateOutcome:
    """Result of one submission attempt; logged and discarded."""

    submitted_price: float
    message_id: str
    acknowledged: bool
    acknowledged_price: str | None = None


@dataclass(frozen=True, slots=True)
class CycleResult:
    """Terminal view of a single update cycle."""

    stage: CycleStage
    price: PriceRecord | None = None
    outcome: UpdateOutcome | None = None
    error: "CycleError | None" = None

    @property
    def succeeded(self) -> bool:
        return self.stage is CycleStage.SUCCEEDED


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    """Read-only snapshot of the oracle service state."""

    is_running: bool
    process_id: str
    update_interval_ms: int
    timer_armed: bool
    cycles_in_flight: int
