"""Oracle service entrypoint: one-shot or recurring AO price updates."""

import argparse
import asyncio
import logging
import signal
from collections.abc import Sequence
from typing import Any

import httpx

from ao_price_oracle.core.config import Settings, get_settings
from ao_price_oracle.core.credentials import CredentialProvider, EnvJwkCredentialProvider
from ao_price_oracle.core.errors import ConfigurationError
from ao_price_oracle.core.logging import configure_logging
from ao_price_oracle.services.oracle.controller import UpdateCycleController
from ao_price_oracle.services.oracle.supervisor import LifecycleSupervisor
from ao_price_oracle.services.price_source.client import PriceSourceClient
from ao_price_oracle.services.submission.client import AoSubmissionClient
from ao_price_oracle.services.submission.data_item import decode_target


def build_supervisor(
    settings: Settings,
    http: httpx.AsyncClient,
    credentials: CredentialProvider | None = None,
) -> LifecycleSupervisor:
    """Wire the oracle components; raises ConfigurationError before anything runs."""

    process_id = settings.process_id()
    if not process_id:
        raise ConfigurationError("PROCESS_ID environment variable is required")
    try:
        decode_target(process_id)
    except ValueError as exc:
        raise ConfigurationError(f"PROCESS_ID is not a valid AO process id: {exc}") from exc

    provider = credentials or EnvJwkCredentialProvider(settings)
    signer = provider.load_signer()
    logging.getLogger(__name__).info("oracle_signer_initialized", extra={"address": signer.address})

    controller = UpdateCycleController(
        price_source=PriceSourceClient(http, settings),
        submission=AoSubmissionClient(http, settings),
        signer=signer,
        process_id=process_id,
    )
    return LifecycleSupervisor(
        controller,
        process_id=process_id,
        update_interval_ms=settings.update_interval_ms(),
        serialize_cycles=settings.SERIALIZE_CYCLES,
    )


class ShutdownSignals:
    """Turns SIGINT/SIGTERM into a shutdown event for the supervisor.

    Handlers go on the running loop where the platform allows it and fall back
    to ``signal.signal`` elsewhere; ``remove()`` restores the previous state.
    """

    def __init__(
        self,
        shutdown_event: asyncio.Event,
        logger: logging.Logger,
        signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        self.shutdown_event = shutdown_event
        self.logger = logger
        self.signals = tuple(signals)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[signal.Signals, Any] = {}

    def _on_signal(self, signal_name: str) -> None:
        if self.shutdown_event.is_set():
            return
        self.logger.info("oracle_shutdown_signal", extra={"signal": signal_name})
        self.shutdown_event.set()

    def install(self) -> None:
        self._loop = loop = asyncio.get_running_loop()
        for sig in self.signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig.name)
            except NotImplementedError:
                self._previous[sig] = signal.signal(
                    sig,
                    lambda *_, name=sig.name: loop.call_soon_threadsafe(self._on_signal, name),
                )

    def remove(self) -> None:
        if self._loop is None:
            return
        for sig in self.signals:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))
            else:
                self._loop.remove_signal_handler(sig)
        self._loop = None


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ao-price-oracle",
        description="Fetch the AO token price from Arweave and push it to the credits process.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="perform a single price update and exit",
    )
    return parser.parse_args(argv)


async def _run(once: bool) -> int:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger = logging.getLogger(__name__)

    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_S) as http:
        try:
            supervisor = build_supervisor(settings, http)
        except ConfigurationError as exc:
            logger.error("oracle_configuration_error", extra={"error": str(exc)})
            return 1

        if once:
            await supervisor.run_once()
            return 0

        shutdown_event = asyncio.Event()
        signals = ShutdownSignals(shutdown_event, logger)
        signals.install()
        try:
            await supervisor.serve(shutdown_event)
        finally:
            signals.remove()

    logger.info("oracle_shutdown")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the oracle until interrupted, or once with --once."""

    args = _parse_args(argv)
    try:
        return asyncio.run(_run(once=args.once))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
