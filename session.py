# session.py
"""
Session progression: collecting, collapsing, igniting and the final outcome.

This module defines the SessionStateMachine, which owns the immutable
SessionState value, consumes collection batches from the particle fields on a
fixed cadence, accepts the temperature/gravity controls and resolves the manual
ignition attempt into a star type or a failed collapse.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from particle import Category, CollectionEvent
from scheduler import ScheduledAction, Scheduler

# --- Data Contracts ---
#
# class SessionStateMachine:
#   - __init__(self, config: SessionConfig, scheduler: Scheduler, rng, batch_sources):
#     - Inputs:
#       - config: Targets, control ranges and delays.
#       - scheduler: Where every delayed transition and timer is registered.
#       - rng: Object with random() -> float in [0, 1). Drives the ignition roll.
#       - batch_sources: Callables returning the CollectionEvents gathered since
#         their previous call (ParticleField.collected_batch).
#     - Side Effects: Registers the collection sampling cadence and the first hint.
#
#   - attempt_ignite(self) -> Optional[bool]:
#     - Outputs: True/False for the drawn outcome, None when ignored.
#
#   - restart(self) -> None:
#     - Side Effects: Cancels every action this machine scheduled and resets
#       the state to that of a freshly constructed session.
#
#   - Invariants:
#     - Resource totals stay within [0, target * overflow] and only change
#       while collecting.
#     - Temperature and gravity stay within their ranges and only change while
#       collapsing.


class Stage(Enum):
    COLLECTING = "collecting"
    COLLAPSING = "collapsing"
    IGNITING = "igniting"
    COMPLETE = "complete"
    FAILED = "failed"


class StarType(Enum):
    RED_DWARF = "red_dwarf"
    YELLOW_DWARF = "yellow_dwarf"
    BLUE_GIANT = "blue_giant"
    NEUTRON_STAR = "neutron_star"
    FAILED = "failed"


class WarningLevel(Enum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"


# --- Ignition odds ---
BASE_SUCCESS_CHANCE = 0.85
UNSTABLE_PENALTY = 0.30
STABLE_RATIO_RANGE = (0.8, 1.2)
EXTREME_RATIO = 1.7
EXTREME_SUCCESS_CHANCE = 0.20

# --- Star classification thresholds, checked in this order ---
RED_DWARF_MAX_TEMP = 1.1
RED_DWARF_MIN_GRAVITY = 1.0
HOT_STAR_MIN_TEMP = 1.3
BLUE_GIANT_MAX_GRAVITY = 1.2
NEUTRON_STAR_MIN_GRAVITY = 1.3

WARNING_RATIO = 1.5

STAR_DESCRIPTIONS = {
    StarType.RED_DWARF: "A small, relatively cool, low-mass star that can live for trillions of years.",
    StarType.YELLOW_DWARF: "A medium-sized star like our Sun with balanced temperature and gravity.",
    StarType.BLUE_GIANT: "A massive, hot, luminous star that will live fast and die spectacularly.",
    StarType.NEUTRON_STAR: "An incredibly dense remnant of a massive star that collapsed under gravity.",
    StarType.FAILED: "The star formation process became unstable and collapsed.",
}

STAGE_TITLES = {
    Stage.COLLECTING: "Stage 1: Cosmic Cloud Formation",
    Stage.COLLAPSING: "Stage 2: Gravitational Collapse",
    Stage.IGNITING: "Stage 3: Protostar Ignition",
    Stage.COMPLETE: "Star Formation Complete: {star}",
    Stage.FAILED: "Star Formation Failed!",
}

COLLECTING_HINT = "Move around to collect particles!"
COLLAPSING_HINT = 'Balance temperature and gravity to form your star! (Keep both values in the "Perfect!" range)'


def success_chance(temp_ratio: float, grav_ratio: float) -> float:
    """
    Probability that an ignition attempt succeeds for the given control ratios.

    Each ratio outside the stable range costs a fixed penalty. Any ratio past
    the extreme threshold replaces the result with a flat low chance.
    """
    low, high = STABLE_RATIO_RANGE
    chance = BASE_SUCCESS_CHANCE
    if not low <= temp_ratio <= high:
        chance -= UNSTABLE_PENALTY
    if not low <= grav_ratio <= high:
        chance -= UNSTABLE_PENALTY
    if temp_ratio > EXTREME_RATIO or grav_ratio > EXTREME_RATIO:
        chance = EXTREME_SUCCESS_CHANCE
    # 0.85 - 0.30 is not exactly 0.55 in binary floating point.
    return round(chance, 10)


# First matching rule wins. Blue giant is tested before neutron star; a hot star
# with gravity in [1.2, 1.3) matches neither and ends up a yellow dwarf.
_STAR_RULES: Tuple[Tuple[StarType, Callable[[float, float], bool]], ...] = (
    (StarType.RED_DWARF, lambda t, g: t < RED_DWARF_MAX_TEMP and g >= RED_DWARF_MIN_GRAVITY),
    (StarType.BLUE_GIANT, lambda t, g: t >= HOT_STAR_MIN_TEMP and g < BLUE_GIANT_MAX_GRAVITY),
    (StarType.NEUTRON_STAR, lambda t, g: t >= HOT_STAR_MIN_TEMP and g >= NEUTRON_STAR_MIN_GRAVITY),
)


def classify_star(temp_ratio: float, grav_ratio: float) -> StarType:
    """Star type for a successful ignition."""
    for star_type, matches in _STAR_RULES:
        if matches(temp_ratio, grav_ratio):
            return star_type
    return StarType.YELLOW_DWARF


def control_feedback(ratio: float) -> str:
    if ratio < 0.5:
        return "Too low!"
    if ratio < STABLE_RATIO_RANGE[0]:
        return "Getting closer..."
    if ratio <= STABLE_RATIO_RANGE[1]:
        return "Perfect!"
    if ratio <= WARNING_RATIO:
        return "Careful, too high!"
    return "DANGER: Unstable!"


def warning_level(temp_ratio: float, grav_ratio: float) -> WarningLevel:
    worst = max(temp_ratio, grav_ratio)
    if worst > EXTREME_RATIO:
        return WarningLevel.CRITICAL
    if worst > WARNING_RATIO:
        return WarningLevel.WARNING
    return WarningLevel.NONE


def progress_percent(current: float, target: float) -> int:
    """Rounded percentage of target reached, capped at 100."""
    if target <= 0:
        return 100
    return min(int(round(current / target * 100)), 100)


def stage_title(stage: Stage, star_type: Optional[StarType] = None) -> str:
    title = STAGE_TITLES[stage]
    if stage is Stage.COMPLETE:
        star = star_type.value.replace('_', ' ').upper() if star_type else ""
        return title.format(star=star)
    return title


@dataclass(frozen=True)
class SessionConfig:
    fuel_target: float = 100.0
    debris_target: float = 50.0
    temperature_target: float = 80.0
    gravity_target: float = 70.0
    temperature_max: float = 150.0
    gravity_max: float = 140.0
    resource_overflow: float = 1.2
    sampling_interval: float = 1.0
    collapse_delay: float = 2.0
    ignition_delay: float = 1.5
    failure_delay: float = 2.0
    completion_delay: float = 5.0
    collecting_hint_duration: float = 8.0
    collapsing_hint_duration: float = 5.0

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "SessionConfig":
        """Builds the config from the 'session_parameters' section of config.json."""
        defaults = cls()
        values = {
            name: float(params.get(name, getattr(defaults, name)))
            for name in cls.__dataclass_fields__
        }
        config = cls(**values)
        config.validate()
        return config

    def validate(self):
        problems = []
        for name in ('fuel_target', 'debris_target', 'temperature_target', 'gravity_target', 'sampling_interval'):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be positive, got {getattr(self, name)}")
        if self.temperature_target > self.temperature_max:
            problems.append(f"temperature target {self.temperature_target} exceeds its range {self.temperature_max}")
        if self.gravity_target > self.gravity_max:
            problems.append(f"gravity target {self.gravity_target} exceeds its range {self.gravity_max}")
        if self.resource_overflow < 1.0:
            problems.append(f"resource_overflow must be at least 1.0, got {self.resource_overflow}")
        for name in ('collapse_delay', 'ignition_delay', 'failure_delay', 'completion_delay',
                     'collecting_hint_duration', 'collapsing_hint_duration'):
            if getattr(self, name) < 0:
                problems.append(f"{name} must not be negative, got {getattr(self, name)}")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

    def target_for(self, category: Category) -> float:
        return self.fuel_target if category is Category.FUEL else self.debris_target

    def limit_for(self, category: Category) -> float:
        return self.target_for(category) * self.resource_overflow


@dataclass(frozen=True)
class SessionState:
    stage: Stage = Stage.COLLECTING
    fuel: float = 0.0
    debris: float = 0.0
    temperature: float = 0.0
    gravity: float = 0.0
    star_type: Optional[StarType] = None
    collapse_pending: bool = False
    ignition_pending: bool = False
    hint: Optional[str] = None
    fuel_rate: float = 0.0
    debris_rate: float = 0.0


@dataclass(frozen=True)
class StageChanged:
    stage: Stage
    star_type: Optional[StarType] = None
    description: str = ""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(float(value), high))


class SessionStateMachine:
    """
    Owns the session state and every timed transition between stages.
    """
    def __init__(self, config: SessionConfig, scheduler: Scheduler, rng,
                 batch_sources: Iterable[Callable[[], List[CollectionEvent]]] = ()):
        self.config = config
        self.scheduler = scheduler
        self.rng = rng
        self.batch_sources = list(batch_sources)

        self.state = SessionState()
        self._handles: List[ScheduledAction] = []
        self._hint_handle: Optional[ScheduledAction] = None
        self._listeners: List[Callable[[StageChanged], None]] = []

        self._begin_session()
        logging.info(
            f"Session initialized. Targets: fuel {config.fuel_target:g}, debris {config.debris_target:g}, "
            f"temperature {config.temperature_target:g}, gravity {config.gravity_target:g}."
        )

    # --- Read-only queries ---

    @property
    def stage(self) -> Stage:
        return self.state.stage

    def ratios(self) -> Tuple[float, float]:
        return (
            self.state.temperature / self.config.temperature_target,
            self.state.gravity / self.config.gravity_target,
        )

    def total(self, category: Category) -> float:
        return self.state.fuel if category is Category.FUEL else self.state.debris

    def rate(self, category: Category) -> float:
        return self.state.fuel_rate if category is Category.FUEL else self.state.debris_rate

    def progress(self, category: Category) -> int:
        return progress_percent(self.total(category), self.config.target_for(category))

    def title(self) -> str:
        return stage_title(self.state.stage, self.state.star_type)

    def description(self) -> str:
        if self.state.stage not in (Stage.COMPLETE, Stage.FAILED) or self.state.star_type is None:
            return ""
        return STAR_DESCRIPTIONS[self.state.star_type]

    def feedback(self) -> Tuple[str, str]:
        temp_ratio, grav_ratio = self.ratios()
        return control_feedback(temp_ratio), control_feedback(grav_ratio)

    def warning(self) -> WarningLevel:
        if self.state.stage is not Stage.COLLAPSING:
            return WarningLevel.NONE
        return warning_level(*self.ratios())

    # --- Notifications ---

    def subscribe(self, listener: Callable[[StageChanged], None]):
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Callable[[StageChanged], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_stage(self, stage: Stage, **changes):
        previous = self.state.stage
        self.state = replace(self.state, stage=stage, **changes)
        logging.info(f"Stage changed: {previous.value} -> {stage.value}.")
        event = StageChanged(stage, self.state.star_type, self.description())
        for listener in list(self._listeners):
            listener(event)

    # --- Scheduling ---

    def _schedule(self, delay: float, action: Callable[[], None], label: str) -> ScheduledAction:
        self._handles = [h for h in self._handles if h.active]
        handle = self.scheduler.schedule(delay, action, label=label)
        self._handles.append(handle)
        return handle

    def _begin_session(self):
        handle = self.scheduler.schedule_interval(
            self.config.sampling_interval, self.sample_collections, label="collection sampling"
        )
        self._handles.append(handle)
        self._show_hint(COLLECTING_HINT, self.config.collecting_hint_duration)

    def _show_hint(self, text: str, duration: float):
        if self._hint_handle is not None:
            self._hint_handle.cancel()
        self.state = replace(self.state, hint=text)
        self._hint_handle = self._schedule(duration, self._dismiss_hint, "hint dismissal")

    def _dismiss_hint(self):
        self._hint_handle = None
        self.state = replace(self.state, hint=None)

    # --- Collecting ---

    def sample_collections(self):
        """
        Drains every batch source and applies the summed amounts. Batches that
        arrive outside the collecting stage are discarded.
        """
        amounts = {category: 0 for category in Category}
        for source in self.batch_sources:
            for event in source():
                amounts[event.category] += event.amount

        if self.state.stage is not Stage.COLLECTING:
            if any(amounts.values()):
                logging.debug(f"Discarded collection batch outside collecting stage: {amounts}.")
            return

        interval = self.config.sampling_interval
        self.state = replace(
            self.state,
            fuel_rate=amounts[Category.FUEL] / interval,
            debris_rate=amounts[Category.DEBRIS] / interval,
        )
        self.add_resources(amounts[Category.FUEL], amounts[Category.DEBRIS])

    def add_resources(self, fuel: float = 0.0, debris: float = 0.0):
        if self.state.stage is not Stage.COLLECTING:
            return
        cfg = self.config
        self.state = replace(
            self.state,
            fuel=_clamp(self.state.fuel + fuel, 0.0, cfg.limit_for(Category.FUEL)),
            debris=_clamp(self.state.debris + debris, 0.0, cfg.limit_for(Category.DEBRIS)),
        )
        if fuel or debris:
            logging.debug(f"Resources now fuel={self.state.fuel:g}, debris={self.state.debris:g}.")
        self._check_collapse()

    def _check_collapse(self):
        if self.state.collapse_pending:
            return
        if self.state.fuel >= self.config.fuel_target and self.state.debris >= self.config.debris_target:
            self.state = replace(self.state, collapse_pending=True)
            logging.info(f"Resource targets reached. Collapse begins in {self.config.collapse_delay:g}s.")
            self._schedule(self.config.collapse_delay, self._enter_collapsing, "collapse")

    def _enter_collapsing(self):
        if self.state.stage is not Stage.COLLECTING:
            return
        self._set_stage(Stage.COLLAPSING, collapse_pending=False, fuel_rate=0.0, debris_rate=0.0)
        self._show_hint(COLLAPSING_HINT, self.config.collapsing_hint_duration)

    # --- Collapsing ---

    def adjust_temperature(self, value: float):
        if self.state.stage is not Stage.COLLAPSING:
            return
        value = _clamp(value, 0.0, self.config.temperature_max)
        if value != self.state.temperature:
            self.state = replace(self.state, temperature=value)

    def adjust_gravity(self, value: float):
        if self.state.stage is not Stage.COLLAPSING:
            return
        value = _clamp(value, 0.0, self.config.gravity_max)
        if value != self.state.gravity:
            self.state = replace(self.state, gravity=value)

    def attempt_ignite(self) -> Optional[bool]:
        """
        Draws the ignition outcome from the current control ratios and schedules
        the matching transition.

        Returns:
            Optional[bool]: The drawn outcome, or None when the attempt is ignored
            (wrong stage, or an outcome is already pending).
        """
        if self.state.stage is not Stage.COLLAPSING or self.state.ignition_pending:
            logging.debug(f"Ignition attempt ignored in stage {self.state.stage.value}.")
            return None

        temp_ratio, grav_ratio = self.ratios()
        chance = success_chance(temp_ratio, grav_ratio)
        roll = float(self.rng.random())
        succeeded = roll < chance
        self.state = replace(self.state, ignition_pending=True)

        if succeeded:
            star_type = classify_star(temp_ratio, grav_ratio)
            self._schedule(self.config.ignition_delay, lambda: self._enter_igniting(star_type), "ignition")
        else:
            self._schedule(self.config.failure_delay, self._enter_failed, "failure")

        logging.info(
            f"Ignition attempt: temperature ratio {temp_ratio:.2f}, gravity ratio {grav_ratio:.2f}, "
            f"chance {chance:.2f}, roll {roll:.3f} -> {'success' if succeeded else 'failure'}."
        )
        return succeeded

    def _enter_igniting(self, star_type: StarType):
        if self.state.stage is not Stage.COLLAPSING:
            return
        self._set_stage(Stage.IGNITING, star_type=star_type, ignition_pending=False, hint=None)
        self._schedule(self.config.completion_delay, self._enter_complete, "completion")

    def _enter_complete(self):
        if self.state.stage is not Stage.IGNITING:
            return
        self._set_stage(Stage.COMPLETE)

    def _enter_failed(self):
        if self.state.stage is not Stage.COLLAPSING:
            return
        self._set_stage(Stage.FAILED, star_type=StarType.FAILED, ignition_pending=False, hint=None)

    # --- Restart ---

    def restart(self):
        for handle in self._handles:
            handle.cancel()
        self._handles = []
        self._hint_handle = None

        previous = self.state.stage
        self.state = SessionState()
        self._begin_session()
        logging.info(f"Session restarted from stage {previous.value}.")

        event = StageChanged(Stage.COLLECTING)
        for listener in list(self._listeners):
            listener(event)
