from __future__ import annotations

import numpy as np
import pytest

from particle import Category
from session import SessionState, Stage, StageChanged, StarType
from simulation import InputSample, Simulation

WIDTH = 800.0
HEIGHT = 600.0
CENTER = (WIDTH / 2, HEIGHT / 2)
DT = 1.0 / 60


@pytest.fixture()
def sim() -> Simulation:
    return Simulation({}, {}, WIDTH, HEIGHT, np.random.default_rng(7))


def _run(sim: Simulation, seconds: float, pointer=CENTER, active: bool = False) -> None:
    for _ in range(int(round(seconds / DT))):
        sim.step(pointer, active, DT)


def _reach_collapse(sim: Simulation) -> None:
    sim.session.add_resources(fuel=100, debris=50)
    _run(sim, sim.session.config.collapse_delay + 0.1)
    assert sim.stage is Stage.COLLAPSING


def test_fields_start_populated(sim: Simulation) -> None:
    assert sim.fields[Category.FUEL].uncollected_count == 15
    assert sim.fields[Category.DEBRIS].uncollected_count == 10
    assert sim.stage is Stage.COLLECTING
    assert len(sim.snapshot()) == 25


def test_population_stays_under_ceiling(sim: Simulation) -> None:
    for _ in range(60 * 20):
        sim.step(CENTER, False, DT)
        for field in sim.fields.values():
            assert field.uncollected_count <= field.config.population_limit

    assert sim.fields[Category.FUEL].uncollected_count > 15


def test_collected_particles_reach_the_session_on_the_sampling_cadence(sim: Simulation) -> None:
    fuel = sim.fields[Category.FUEL]
    fuel.reset()
    fuel.spawn()
    fuel.positions[0] = CENTER
    fuel.velocities[0] = (0.0, 0.0)

    sim.step(CENTER, True, DT)
    assert fuel.collected[0]
    assert sim.session.state.fuel == 0

    _run(sim, 1.0, active=True)
    assert sim.session.state.fuel == 1
    assert sim.session.state.debris == 0


def test_fields_freeze_after_collecting_stage(sim: Simulation) -> None:
    _reach_collapse(sim)
    before = sim.snapshot()
    _run(sim, 2.0)
    assert sim.snapshot() == before


def test_input_drives_controls_and_ignition(sim: Simulation, scripted_random) -> None:
    sim.session.rng = scripted_random([0.0])
    changes: list[StageChanged] = []
    sim.session.subscribe(changes.append)
    _reach_collapse(sim)

    sim.update(InputSample(pointer=CENTER, temperature=112.0, gravity=70.0), DT)
    assert sim.session.state.temperature == 112.0
    assert sim.session.state.gravity == 70.0

    sim.update(InputSample(ignite=True), DT)
    _run(sim, sim.session.config.ignition_delay + sim.session.config.completion_delay + 0.1)

    assert sim.stage is Stage.COMPLETE
    assert sim.session.state.star_type is StarType.BLUE_GIANT
    assert [change.stage for change in changes] == [Stage.COLLAPSING, Stage.IGNITING, Stage.COMPLETE]


def test_restart_mid_transition_is_complete_and_final(sim: Simulation, scripted_random) -> None:
    sim.session.rng = scripted_random([0.99])
    _reach_collapse(sim)
    sim.update(InputSample(temperature=80.0, gravity=70.0, ignite=True), DT)
    assert sim.session.state.ignition_pending

    sim.update(InputSample(restart=True), DT)

    fresh = Simulation({}, {}, WIDTH, HEIGHT, np.random.default_rng(7))
    assert sim.session.state == fresh.session.state
    assert sim.scheduler.pending == fresh.scheduler.pending
    assert sim.fields[Category.FUEL].uncollected_count == 15
    assert sim.fields[Category.DEBRIS].uncollected_count == 10
    assert min(view.id for view in sim.snapshot()) == 0

    _run(sim, 10.0)
    assert sim.stage is Stage.COLLECTING
    assert sim.session.state.star_type is None


def test_totals_stay_within_bounds_during_collection(sim: Simulation) -> None:
    limits = {
        Category.FUEL: sim.session.config.limit_for(Category.FUEL),
        Category.DEBRIS: sim.session.config.limit_for(Category.DEBRIS),
    }
    for frame in range(60 * 10):
        # Sweep the pointer around the edges where particles enter.
        angle = frame / 40.0
        pointer = (CENTER[0] + 330 * np.cos(angle), CENTER[1] + 260 * np.sin(angle))
        sim.step(pointer, True, DT)
        state: SessionState = sim.session.state
        assert 0 <= state.fuel <= limits[Category.FUEL]
        assert 0 <= state.debris <= limits[Category.DEBRIS]
