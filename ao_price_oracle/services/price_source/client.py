"""Ledger price source: locates the latest RedStone AO record on Arweave and extracts its price."""

import json
import logging
import math
from datetime import datetime
from typing import Any

import httpx

from ao_price_oracle.core.config import Settings
from ao_price_oracle.core.errors import FetchError, MalformedDataError, NotFoundError
from ao_price_oracle.core.time_utils import from_epoch_ms, utc_now
from ao_price_oracle.core.types import PriceRecord

logger = logging.getLogger(__name__)

_LATEST_RECORD_QUERY = """
query LatestOracleRecord($type: String!, $feed: String!, $service: String!, $owner: String!) {
  transactions(
    sort: HEIGHT_DESC,
    first: 1,
    tags: [
      { name: "type", values: [$type] },
      { name: "dataFeedId", values: [$feed] },
      { name: "dataServiceId", values: [$service] }
    ],
    owners: [$owner]
  ) {
    edges {
      node {
        id
        block { height }
      }
    }
  }
}
"""

_GRAPHQL_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class PriceSourceClient:
    """Read-only client for the Arweave GraphQL index and data gateway."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings) -> None:
        self._http = http
        self.graphql_url = settings.ARWEAVE_GRAPHQL_URL
        self.data_url = settings.ARWEAVE_DATA_URL.rstrip("/")
        self.data_feed_id = settings.DATA_FEED_ID
        self.data_service_id = settings.DATA_SERVICE_ID
        self.oracle_type = settings.ORACLE_TYPE
        self.trusted_owner = settings.TRUSTED_OWNER

    def build_query(self) -> dict[str, Any]:
        """Return the GraphQL request body for the newest trusted record of the feed."""

        return {
            "query": _LATEST_RECORD_QUERY,
            "variables": {
                "type": self.oracle_type,
                "feed": self.data_feed_id,
                "service": self.data_service_id,
                "owner": self.trusted_owner,
            },
        }

    async def find_latest_transaction_id(self) -> str:
        step = "find_latest_transaction_id"
        try:
            response = await self._http.post(
                self.graphql_url,
                json=self.build_query(),
                headers=_GRAPHQL_HEADERS,
            )
        except httpx.HTTPError as exc:
            raise FetchError(f"GraphQL request failed: {exc!r}", step=step) from exc

        if not response.is_success:
            raise FetchError(
                f"GraphQL request failed: {response.status_code} {response.reason_phrase}",
                step=step,
            )

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise FetchError("GraphQL response is not valid JSON", step=step) from exc

        if not isinstance(body, dict):
            raise FetchError("GraphQL response is not a JSON object", step=step)
        if body.get("errors"):
            raise FetchError(f"GraphQL query returned errors: {body['errors']}", step=step)

        edges = ((body.get("data") or {}).get("transactions") or {}).get("edges") or []
        if not edges:
            raise NotFoundError("No transactions found", step=step)

        node = edges[0].get("node") if isinstance(edges[0], dict) else None
        transaction_id = node.get("id") if isinstance(node, dict) else None
        if not isinstance(transaction_id, str) or not transaction_id:
            raise NotFoundError("Latest transaction carries no id", step=step)

        logger.info("price_source_latest_transaction", extra={"transaction_id": transaction_id})
        return transaction_id

    async def fetch_payload(self, transaction_id: str) -> dict[str, Any]:
        step = "fetch_payload"
        url = f"{self.data_url}/{transaction_id}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch price data: {exc!r}", step=step) from exc

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch price data: {response.status_code} {response.reason_phrase}",
                step=step,
            )

        try:
            payload = response.json()
        except json.JSONDecodeError as exc:
            raise MalformedDataError("Price data is not valid JSON", step=step) from exc

        if not isinstance(payload, dict):
            raise MalformedDataError("Price data is not a JSON object", step=step)

        logger.info("price_source_payload_fetched", extra={"transaction_id": transaction_id})
        return payload

    def _matching_data_point(self, payload: dict[str, Any]) -> dict[str, Any]:
        step = "extract_price"
        data_points = payload.get("dataPoints")
        if not isinstance(data_points, list) or not data_points:
            raise MalformedDataError("Invalid price data structure: no dataPoints found", step=step)

        matches = [
            point
            for point in data_points
            if isinstance(point, dict) and point.get("dataFeedId") == self.data_feed_id
        ]
        if not matches:
            raise MalformedDataError(f"{self.data_feed_id} data point not found in price data", step=step)
        if len(matches) > 1:
            raise MalformedDataError(
                f"{len(matches)} {self.data_feed_id} data points found, expected exactly one",
                step=step,
            )
        return matches[0]

    def extract_price(self, payload: dict[str, Any]) -> float:
        """Return the feed's price, failing closed on any shape or value defect."""

        step = "extract_price"
        value = self._matching_data_point(payload).get("value")
        if not _is_number(value):
            raise MalformedDataError(f"Invalid price value: {value!r}", step=step)
        try:
            price = float(value)
        except OverflowError as exc:
            raise MalformedDataError("Price value does not fit a float", step=step) from exc
        if not math.isfinite(price):
            raise MalformedDataError(f"Invalid price value: {value!r}", step=step)
        if price <= 0:
            raise MalformedDataError(f"Price must be positive, got {value!r}", step=step)
        return price

    def _record_timestamp(self, payload: dict[str, Any]) -> datetime:
        """Publication time of the record; the fetch time when it is absent or unusable."""

        timestamp_ms = payload.get("timestampMilliseconds")
        if _is_number(timestamp_ms):
            try:
                return from_epoch_ms(timestamp_ms)
            except (OverflowError, OSError, ValueError):
                logger.warning(
                    "price_source_timestamp_unusable",
                    extra={"timestamp_ms": str(timestamp_ms)[:32]},
                )
        return utc_now()

    async def fetch_price(self) -> PriceRecord:
        transaction_id = await self.find_latest_transaction_id()
        payload = await self.fetch_payload(transaction_id)
        value = self.extract_price(payload)
        data_point = self._matching_data_point(payload)

        timestamp = self._record_timestamp(payload)
        metadata = data_point.get("metadata")
        is_signature_valid = payload.get("isSignatureValid")

        record = PriceRecord(
            value=value,
            timestamp=timestamp,
            source_transaction_id=transaction_id,
            data_feed_id=self.data_feed_id,
            data_service_id=payload.get("dataServiceId"),
            signer_address=payload.get("signerAddress"),
            is_signature_valid=is_signature_valid if isinstance(is_signature_valid, bool) else None,
            metadata=metadata if isinstance(metadata, dict) else None,
        )
        logger.info(
            "price_source_price",
            extra={
                "data_feed_id": record.data_feed_id,
                "price": record.value,
                "transaction_id": transaction_id,
                "price_timestamp": record.timestamp.isoformat(),
            },
        )
        return record
