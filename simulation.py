# simulation.py
"""
Wires the particle fields, the session and the scheduler into one frame loop.

This module defines the Simulation class, which is responsible for advancing
the whole session by one frame: ticking the particle fields while resources
are being collected, advancing the scheduler that drives spawning, batch
sampling and stage transitions, and applying user input.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from constants import FPS
from particle import Category, ParticleField, ParticleView, SimulationConfig
from scheduler import ScheduledAction, Scheduler
from session import SessionConfig, SessionStateMachine, Stage

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, sim_params, session_params, width, height, rng, scheduler=None):
#     - Inputs:
#       - sim_params: 'simulation_parameters' section of config.json.
#       - session_params: 'session_parameters' section of config.json.
#       - width, height: Viewport size in pixels.
#       - rng: np.random.Generator shared by the fields and the session.
#       - scheduler: Optional Scheduler; a fresh one is created otherwise.
#     - Side Effects: Seeds both fields and registers their spawn cadence.
#
#   - update(self, sample: InputSample, dt: float) -> None:
#     - Side Effects: Applies the input, ticks the fields (collecting stage
#       only) and advances the scheduler by dt.
#
#   - restart(self) -> None:
#     - Side Effects: Cancels every scheduled action, then resets the fields
#       and the session. Nothing scheduled before the call can run after it.


@dataclass(frozen=True)
class InputSample:
    """One frame of input from the pointer and the control widgets."""
    pointer: Tuple[float, float] = (0.0, 0.0)
    pointer_active: bool = False
    temperature: Optional[float] = None
    gravity: Optional[float] = None
    ignite: bool = False
    restart: bool = False


class Simulation:
    """
    Owns the session's components and advances them frame by frame.
    """
    def __init__(self, sim_params: Dict[str, Any], session_params: Dict[str, Any],
                 width: float, height: float, rng, scheduler: Optional[Scheduler] = None):
        self.width = width
        self.height = height
        self.scheduler = scheduler if scheduler is not None else Scheduler()

        self.fields = {
            category: ParticleField(category, SimulationConfig.from_params(sim_params, category), rng, width, height)
            for category in Category
        }
        self.session = SessionStateMachine(
            SessionConfig.from_params(session_params),
            self.scheduler,
            rng,
            [field.collected_batch for field in self.fields.values()],
        )

        self._spawn_handles: List[ScheduledAction] = []
        self.frame = 0
        self._start_fields()

        logging.info("Simulation initialized and configuration validated.")

    def _start_fields(self):
        for field in self.fields.values():
            field.populate()
            handle = self.scheduler.schedule_interval(
                field.config.spawn_interval,
                self._make_spawner(field),
                label=f"{field.category.value} spawn",
            )
            self._spawn_handles.append(handle)

    def _make_spawner(self, field: ParticleField):
        def spawn():
            if self.session.stage is Stage.COLLECTING:
                field.spawn_if_room()
        return spawn

    @property
    def stage(self) -> Stage:
        return self.session.stage

    def snapshot(self) -> Tuple[ParticleView, ...]:
        """All particles of every category, for the renderer."""
        views: Tuple[ParticleView, ...] = ()
        for field in self.fields.values():
            views += field.snapshot()
        return views

    def apply_input(self, sample: InputSample):
        if sample.restart:
            self.restart()
            return
        if sample.temperature is not None:
            self.session.adjust_temperature(sample.temperature)
        if sample.gravity is not None:
            self.session.adjust_gravity(sample.gravity)
        if sample.ignite:
            self.session.attempt_ignite()

    def step(self, pointer: Tuple[float, float], pointer_active: bool, dt: float = 1.0 / FPS):
        """
        Executes one frame of the session.
        """
        if self.session.stage is Stage.COLLECTING:
            for field in self.fields.values():
                field.tick(pointer, pointer_active, dt)
        self.scheduler.advance(dt)
        self.frame += 1

    def update(self, sample: InputSample, dt: float = 1.0 / FPS):
        self.apply_input(sample)
        if sample.restart:
            return
        self.step(sample.pointer, sample.pointer_active, dt)

    def restart(self):
        self.scheduler.cancel_all()
        self._spawn_handles = []
        for field in self.fields.values():
            field.reset()
        self.session.restart()
        self._start_fields()
        self.frame = 0
        logging.info("Simulation restarted.")
