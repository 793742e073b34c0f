"""Entrypoint wiring: startup validation, shutdown signals and the --once mode."""

import asyncio
import logging
import os
import signal

import httpx
import pytest

from ao_price_oracle.core.config import Settings
from ao_price_oracle.core.errors import ConfigurationError
from ao_price_oracle.core.types import CycleResult, CycleStage
from ao_price_oracle.services.oracle import main as oracle_main
from ao_price_oracle.services.oracle.supervisor import LifecycleSupervisor


class OneShotController:
    def __init__(self) -> None:
        self.calls = 0

    async def run_cycle(self) -> CycleResult:
        self.calls += 1
        return CycleResult(stage=CycleStage.FAILED)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(oracle_main, "configure_logging", lambda level: None)


def test_build_supervisor_wires_settings(settings: Settings) -> None:
    supervisor = oracle_main.build_supervisor(settings, httpx.AsyncClient())

    status = supervisor.status()
    assert status.process_id == settings.PROCESS_ID
    assert status.update_interval_ms == 60_000
    assert status.is_running is False


def test_missing_process_id_is_fatal(settings: Settings) -> None:
    with pytest.raises(ConfigurationError, match="PROCESS_ID"):
        oracle_main.build_supervisor(settings.model_copy(update={"PROCESS_ID": " "}), httpx.AsyncClient())


@pytest.mark.parametrize("process_id", ["not-a-process", "AAAA", "credits process!"])
def test_malformed_process_id_is_fatal(settings: Settings, process_id: str) -> None:
    with pytest.raises(ConfigurationError, match="PROCESS_ID"):
        oracle_main.build_supervisor(
            settings.model_copy(update={"PROCESS_ID": process_id}), httpx.AsyncClient()
        )


def test_interval_is_clamped(settings: Settings) -> None:
    supervisor = oracle_main.build_supervisor(
        settings.model_copy(update={"UPDATE_INTERVAL_MS": 5}), httpx.AsyncClient()
    )

    assert supervisor.status().update_interval_ms == 1_000


def test_invalid_credential_exits_nonzero(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
    monkeypatch.setattr(
        oracle_main, "get_settings", lambda: settings.model_copy(update={"ORACLE_PK": "{}"})
    )

    assert oracle_main.main(["--once"]) == 1


def test_once_runs_a_single_cycle_and_exits_zero(
    monkeypatch: pytest.MonkeyPatch, settings: Settings
) -> None:
    controller = OneShotController()
    supervisors: list[LifecycleSupervisor] = []

    def build(settings: Settings, http: httpx.AsyncClient) -> LifecycleSupervisor:
        supervisor = LifecycleSupervisor(controller, settings.PROCESS_ID, 60_000)
        supervisors.append(supervisor)
        return supervisor

    monkeypatch.setattr(oracle_main, "get_settings", lambda: settings)
    monkeypatch.setattr(oracle_main, "build_supervisor", build)

    assert oracle_main.main(["--once"]) == 0
    assert controller.calls == 1
    assert supervisors[0].status().timer_armed is False
    assert supervisors[0].status().is_running is False


@pytest.mark.asyncio
async def test_shutdown_signal_sets_event_once(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("INFO")
    shutdown_event = asyncio.Event()
    signals = oracle_main.ShutdownSignals(shutdown_event, logging.getLogger("test"), (signal.SIGUSR1,))
    signals.install()
    try:
        os.kill(os.getpid(), signal.SIGUSR1)
        await asyncio.wait_for(shutdown_event.wait(), timeout=1.0)
        os.kill(os.getpid(), signal.SIGUSR1)
        await asyncio.sleep(0.05)
    finally:
        signals.remove()

    assert shutdown_event.is_set()
    events = [record for record in caplog.records if record.getMessage() == "oracle_shutdown_signal"]
    assert [record.signal for record in events] == ["SIGUSR1"]
