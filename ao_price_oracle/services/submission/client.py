"""Submission client contract and its AO messenger/compute unit implementation."""

import json
import logging
from typing import Any, Protocol

import httpx

from ao_price_oracle.core.config import Settings
from ao_price_oracle.core.credentials import Signer
from ao_price_oracle.core.errors import ConfirmationError, SubmissionError
from ao_price_oracle.core.types import Tag
from ao_price_oracle.services.submission.data_item import create_data_item

logger = logging.getLogger(__name__)

# Tags the AO SDK stamps on every message it sends.
_PROTOCOL_TAGS = (
    Tag("Data-Protocol", "ao"),
    Tag("Variant", "ao.TN.1"),
    Tag("Type", "Message"),
    Tag("SDK", "aoconnect"),
)
_MESSAGE_DATA = b"1234"


class SubmissionClient(Protocol):
    """Sends update messages to a remote process and reads their outcome."""

    async def message(self, process_id: str, tags: list[Tag], signer: Signer) -> str: ...

    async def result(self, message_id: str, process_id: str) -> dict[str, Any]: ...


class AoSubmissionClient:
    """Posts signed data items to an AO messenger unit and reads results from a compute unit."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings) -> None:
        self._http = http
        self.mu_url = settings.AO_MU_URL.rstrip("/")
        self.cu_url = settings.AO_CU_URL.rstrip("/")

    async def message(self, process_id: str, tags: list[Tag], signer: Signer) -> str:
        try:
            item = create_data_item(
                signer,
                data=_MESSAGE_DATA,
                tags=[*tags, *_PROTOCOL_TAGS],
                target=process_id,
            )
        except ValueError as exc:
            raise SubmissionError(f"Failed to sign message: {exc}", step="sign") from exc

        try:
            response = await self._http.post(
                f"{self.mu_url}/",
                content=item.raw,
                headers={"Content-Type": "application/octet-stream", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise SubmissionError(f"Message delivery failed: {exc!r}", step="send") from exc

        if not response.is_success:
            raise SubmissionError(
                f"Message delivery failed: {response.status_code} {response.text[:200]}",
                step="send",
            )

        try:
            body = response.json()
        except json.JSONDecodeError:
            body = {}
        message_id = body.get("id") if isinstance(body, dict) else None
        if message_id and message_id != item.id:
            logger.warning(
                "submission_message_id_mismatch",
                extra={"local_id": item.id, "remote_id": message_id},
            )
        return message_id or item.id

    async def result(self, message_id: str, process_id: str) -> dict[str, Any]:
        step = "result"
        try:
            response = await self._http.get(
                f"{self.cu_url}/result/{message_id}",
                params={"process-id": process_id},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ConfirmationError(f"Result request failed: {exc!r}", step=step) from exc

        if not response.is_success:
            raise ConfirmationError(
                f"Result request failed: {response.status_code} {response.reason_phrase}",
                step=step,
            )

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise ConfirmationError("Result response is not valid JSON", step=step) from exc
        if not isinstance(body, dict):
            raise ConfirmationError("Result response is not a JSON object", step=step)
        return body
