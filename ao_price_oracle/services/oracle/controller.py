"""Update cycle controller: fetch, submit, confirm, and contain every per-cycle failure."""

import itertools
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from ao_price_oracle.core.credentials import Signer
from ao_price_oracle.core.errors import ConfirmationAmbiguous, ConfirmationError, CycleError
from ao_price_oracle.core.types import CycleResult, CycleStage, PriceRecord, Tag, UpdateOutcome
from ao_price_oracle.services.submission.client import SubmissionClient

logger = logging.getLogger(__name__)

UPDATE_ACTION = "UpdatePaymentTokenPrice"
ACK_TAG = "Updated-Payment-Token-Price"


class PriceSource(Protocol):
    async def fetch_price(self) -> PriceRecord: ...


def format_price(value: float) -> str:
    """Render a float the way JavaScript's ``Number#toString`` does.

    The consuming process parses the tag with JavaScript-compatible rules, so
    ``12.0`` must be sent as ``"12"`` and ``1e-07`` as ``"1e-7"``.
    """

    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    digit_str = "".join(str(d) for d in digits)
    # Position of the decimal point relative to the first significant digit.
    point = len(digit_str) + exponent
    prefix = "-" if sign else ""

    if -6 < point <= 21:
        if point <= 0:
            return f"{prefix}0.{'0' * -point}{digit_str}"
        if point >= len(digit_str):
            return f"{prefix}{digit_str}{'0' * (point - len(digit_str))}"
        return f"{prefix}{digit_str[:point]}.{digit_str[point:]}"

    mantissa = digit_str[0] + (f".{digit_str[1:]}" if len(digit_str) > 1 else "")
    exp = point - 1
    return f"{prefix}{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"


def _tags_as_mapping(raw_tags: Any) -> dict[str, str]:
    if isinstance(raw_tags, dict):
        return {str(key): str(value) for key, value in raw_tags.items()}
    if isinstance(raw_tags, list):
        return {
            str(tag["name"]): str(tag.get("value", ""))
            for tag in raw_tags
            if isinstance(tag, dict) and "name" in tag
        }
    return {}


def acknowledged_price(result: dict[str, Any]) -> str:
    """Return the acknowledged price from a message result.

    Raises ConfirmationError when the process reported an error and
    ConfirmationAmbiguous when no acknowledgment tag can be found.
    """

    error = result.get("Error")
    if error:
        raise ConfirmationError(f"Process reported an error: {error}", step="result")

    messages = result.get("Messages")
    if not isinstance(messages, list) or not messages:
        raise ConfirmationAmbiguous("Result carries no messages", response=result)

    first = messages[0] if isinstance(messages[0], dict) else {}
    tags = _tags_as_mapping(first.get("Tags"))
    if ACK_TAG not in tags:
        raise ConfirmationAmbiguous(f"First message carries no {ACK_TAG} tag", response=first)
    return tags[ACK_TAG]


@dataclass(slots=True)
class _CycleContext:
    """Per-cycle progress; overlapping cycles each get their own."""

    cycle_id: int
    stage: CycleStage = CycleStage.IDLE


class UpdateCycleController:
    """Runs one fetch-submit-confirm cycle; never raises to its caller."""

    def __init__(
        self,
        price_source: PriceSource,
        submission: SubmissionClient,
        signer: Signer,
        process_id: str,
    ) -> None:
        self.price_source = price_source
        self.submission = submission
        self.signer = signer
        self.process_id = process_id
        self._cycle_ids = itertools.count(1)

    @staticmethod
    def _transition(ctx: _CycleContext, stage: CycleStage) -> None:
        logger.debug(
            "oracle_cycle_transition",
            extra={"cycle_id": ctx.cycle_id, "from": ctx.stage.value, "to": stage.value},
        )
        ctx.stage = stage

    def _fail(self, ctx: _CycleContext, exc: CycleError, price: PriceRecord | None = None) -> CycleResult:
        self._transition(ctx, CycleStage.FAILED)
        logger.error(
            "oracle_cycle_failed",
            extra={
                "cycle_id": ctx.cycle_id,
                "stage": exc.stage,
                "step": exc.step,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return CycleResult(stage=CycleStage.FAILED, price=price, error=exc)

    async def run_cycle(self) -> CycleResult:
        ctx = _CycleContext(cycle_id=next(self._cycle_ids))
        try:
            return await self._run(ctx)
        except Exception:  # noqa: BLE001
            # Anything unexpected still must not break the recurring timer.
            logger.exception(
                "oracle_cycle_crashed",
                extra={"cycle_id": ctx.cycle_id, "stage": ctx.stage.value},
            )
            return CycleResult(stage=CycleStage.FAILED)

    async def _run(self, ctx: _CycleContext) -> CycleResult:
        self._transition(ctx, CycleStage.FETCHING)
        logger.info("oracle_cycle_started", extra={"cycle_id": ctx.cycle_id, "process_id": self.process_id})
        try:
            price = await self.price_source.fetch_price()
        except CycleError as exc:
            return self._fail(ctx, exc)

        self._transition(ctx, CycleStage.SUBMITTING)
        price_text = format_price(price.value)
        tags = [Tag("Action", UPDATE_ACTION), Tag("Price", price_text)]
        try:
            message_id = await self.submission.message(self.process_id, tags, self.signer)
        except CycleError as exc:
            return self._fail(ctx, exc, price)
        logger.info(
            "oracle_update_sent",
            extra={"cycle_id": ctx.cycle_id, "message_id": message_id, "price": price_text},
        )

        self._transition(ctx, CycleStage.CONFIRMING)
        try:
            result = await self.submission.result(message_id, self.process_id)
            ack = acknowledged_price(result)
        except CycleError as exc:
            return self._fail(ctx, exc, price)
        except ConfirmationAmbiguous as exc:
            logger.warning(
                "oracle_confirmation_ambiguous",
                extra={
                    "cycle_id": ctx.cycle_id,
                    "message_id": message_id,
                    "reason": str(exc),
                    "response": exc.response,
                },
            )
            outcome = UpdateOutcome(submitted_price=price.value, message_id=message_id, acknowledged=False)
        else:
            logger.info(
                "oracle_price_acknowledged",
                extra={"cycle_id": ctx.cycle_id, "message_id": message_id, "acknowledged_price": ack},
            )
            outcome = UpdateOutcome(
                submitted_price=price.value,
                message_id=message_id,
                acknowledged=True,
                acknowledged_price=ack,
            )

        self._transition(ctx, CycleStage.SUCCEEDED)
        logger.info(
            "oracle_cycle_succeeded",
            extra={
                "cycle_id": ctx.cycle_id,
                "price": price.value,
                "message_id": message_id,
                "acknowledged": outcome.acknowledged,
                "source_transaction_id": price.source_transaction_id,
            },
        )
        return CycleResult(stage=CycleStage.SUCCEEDED, price=price, outcome=outcome)
