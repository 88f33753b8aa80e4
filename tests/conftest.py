from __future__ import annotations

from collections.abc import Iterable

import numpy as np
import pytest

from scheduler import Scheduler
from session import SessionConfig, SessionStateMachine


class ScriptedRandom:
    """Stand-in for np.random.Generator that replays fixed draws.

    `random()` pops from the scripted sequence and raises once it is exhausted,
    so a test fails loudly if the code draws more often than expected.
    """

    def __init__(self, draws: Iterable[float] = ()) -> None:
        self.draws = list(draws)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if not self.draws:
            raise AssertionError("no scripted random draws left")
        return self.draws.pop(0)

    def integers(self, high: int) -> int:
        return 0

    def uniform(self, low: float, high: float) -> float:
        return (low + high) / 2.0


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture()
def scheduler() -> Scheduler:
    return Scheduler()


@pytest.fixture()
def session_config() -> SessionConfig:
    return SessionConfig()


@pytest.fixture()
def make_machine(scheduler: Scheduler, session_config: SessionConfig):
    """Builds a session on the shared scheduler with scripted ignition draws."""

    def _make(draws: Iterable[float] = (), batch_sources=()) -> SessionStateMachine:
        return SessionStateMachine(session_config, scheduler, ScriptedRandom(draws), batch_sources)

    return _make


@pytest.fixture()
def scripted_random():
    """Factory for ScriptedRandom, for tests that wire their own components."""
    return ScriptedRandom
