# particle.py
"""
Manages the drifting resource particles of one category.

This module defines the ParticleField class, which owns every particle of a
single category (fuel or debris), spawns them at the screen edges, pulls them
toward the pointer and reports the ones that get collected. Particle state is
stored in NumPy arrays and advanced by a Numba-compiled kernel.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from numba import jit

from constants import FPS

# --- Data Contracts ---
#
# class ParticleField:
#   - __init__(self, category: Category, config: SimulationConfig, rng, width: float, height: float):
#     - Inputs:
#       - category: The single category this field holds.
#       - config: Physics and population parameters.
#       - rng: np.random.Generator (or any object with random/integers/uniform).
#       - width, height: The viewport the particles drift across.
#     - Side Effects: Allocates empty particle arrays.
#
#   - tick(self, pointer_pos, pointer_active, dt) -> List[CollectionEvent]:
#     - Side Effects: Culls, attracts, collects, damps, integrates and wraps.
#     - Invariants:
#       - All arrays share the same length (particle_count).
#       - A collected particle is never moved again and is reported exactly once.
#
#   - collected_batch(self) -> List[CollectionEvent]:
#     - Outputs: Every event since the previous call, in collection order.


class Category(Enum):
    FUEL = "fuel"
    DEBRIS = "debris"


class DebrisSubtype(Enum):
    IRON = "iron"
    SILICATE = "silicate"
    NICKEL = "nickel"
    CARBON = "carbon"


# Index order of the int8 subtype array. -1 marks "no subtype".
DEBRIS_SUBTYPES = (
    DebrisSubtype.IRON,
    DebrisSubtype.SILICATE,
    DebrisSubtype.NICKEL,
    DebrisSubtype.CARBON,
)

# Labels drawn on the particles.
ELEMENT_SYMBOLS = {
    DebrisSubtype.IRON: "Fe",
    DebrisSubtype.SILICATE: "Si",
    DebrisSubtype.NICKEL: "Ni",
    DebrisSubtype.CARBON: "C",
}
FUEL_SYMBOL = "H"


def element_symbol(category: Category, subtype: Optional[DebrisSubtype] = None) -> str:
    if category is Category.FUEL:
        return FUEL_SYMBOL
    return ELEMENT_SYMBOLS[subtype]


@dataclass(frozen=True)
class CollectionEvent:
    category: Category
    subtype: Optional[DebrisSubtype] = None
    amount: int = 1
    timestamp: float = 0.0


@dataclass(frozen=True)
class ParticleView:
    """Read-only copy of one particle, handed to the renderer."""
    id: int
    category: Category
    subtype: Optional[DebrisSubtype]
    x: float
    y: float
    vx: float
    vy: float
    radius: float
    collected: bool


# Per-category defaults, used when config.json leaves a key out.
_CATEGORY_DEFAULTS = {
    Category.FUEL: {"population": 15, "radius_range": (7.5, 12.5)},
    Category.DEBRIS: {"population": 10, "radius_range": (9.0, 15.0)},
}


@dataclass(frozen=True)
class SimulationConfig:
    population_target: int = 15
    attraction_radius: float = 150.0
    collection_radius: float = 30.0
    attraction_force: float = 0.5
    damping: float = 0.98
    spawn_interval: float = 0.5
    population_ceiling: float = 1.8
    offscreen_buffer: float = 100.0
    wrap_margin: float = 50.0
    spawn_offset: float = 20.0
    initial_speed: float = 1.0
    radius_range: Tuple[float, float] = (7.5, 12.5)
    collected_retention: float = 5.0

    @property
    def population_limit(self) -> float:
        return self.population_target * self.population_ceiling

    @classmethod
    def from_params(cls, params: Dict[str, Any], category: Category) -> "SimulationConfig":
        """
        Builds the config for one category from the 'simulation_parameters'
        section of config.json.
        """
        defaults = _CATEGORY_DEFAULTS[category]
        populations = params.get('populations', {})
        radius_ranges = params.get('radius_ranges', {})
        low, high = radius_ranges.get(category.value, defaults['radius_range'])
        config = cls(
            population_target=int(populations.get(category.value, defaults['population'])),
            attraction_radius=float(params.get('attraction_radius', 150.0)),
            collection_radius=float(params.get('collection_radius', 30.0)),
            attraction_force=float(params.get('attraction_force', 0.5)),
            damping=float(params.get('damping', 0.98)),
            spawn_interval=float(params.get('spawn_interval', 0.5)),
            population_ceiling=float(params.get('population_ceiling', 1.8)),
            offscreen_buffer=float(params.get('offscreen_buffer', 100.0)),
            wrap_margin=float(params.get('wrap_margin', 50.0)),
            spawn_offset=float(params.get('spawn_offset', 20.0)),
            initial_speed=float(params.get('initial_speed', 1.0)),
            radius_range=(float(low), float(high)),
            collected_retention=float(params.get('collected_retention', 5.0)),
        )
        config.validate()
        return config

    def validate(self):
        problems = []
        if self.population_target <= 0:
            problems.append(f"population target must be positive, got {self.population_target}")
        if not 0.0 < self.damping < 1.0:
            problems.append(f"damping must lie in (0, 1), got {self.damping}")
        if self.collection_radius > self.attraction_radius:
            problems.append(
                f"collection radius {self.collection_radius} exceeds attraction radius {self.attraction_radius}"
            )
        if self.spawn_interval <= 0:
            problems.append(f"spawn interval must be positive, got {self.spawn_interval}")
        if self.radius_range[0] > self.radius_range[1]:
            problems.append(f"radius range {self.radius_range} is inverted")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)


@jit(nopython=True)
def _advance_particles_numba(
    positions, velocities, collected, pointer_x, pointer_y, pointer_active,
    attraction_radius, collection_radius, attraction_force, damping,
    world_width, world_height, wrap_margin
):
    """
    Numba-jitted physics step for every uncollected particle.

    Collection, attraction, damping, integration and near-edge wrapping happen
    in one pass. Returns a boolean mask of the particles collected this step.
    """
    particle_count = positions.shape[0]
    newly_collected = np.zeros(particle_count, dtype=np.bool_)

    for i in range(particle_count):
        if collected[i]:
            continue

        dx = pointer_x - positions[i, 0]
        dy = pointer_y - positions[i, 1]
        distance = np.sqrt(dx * dx + dy * dy)

        if pointer_active and distance < collection_radius:
            # Frozen where it was caught.
            collected[i] = True
            newly_collected[i] = True
            continue

        if pointer_active and distance < attraction_radius and distance > 0.0:
            force = (1.0 - distance / attraction_radius) * attraction_force
            velocities[i, 0] += dx / distance * force
            velocities[i, 1] += dy / distance * force

        velocities[i, 0] *= damping
        velocities[i, 1] *= damping

        x = positions[i, 0] + velocities[i, 0]
        y = positions[i, 1] + velocities[i, 1]

        # Wrap only when close to the viewport; far overshoot is culled later.
        far_out = (
            x < -wrap_margin or x > world_width + wrap_margin or
            y < -wrap_margin or y > world_height + wrap_margin
        )
        if not far_out:
            if x < 0.0:
                x = world_width
            elif x > world_width:
                x = 0.0
            if y < 0.0:
                y = world_height
            elif y > world_height:
                y = 0.0

        positions[i, 0] = x
        positions[i, 1] = y

    return newly_collected


class ParticleField:
    """
    A container for all particles of one category, managing their state via
    NumPy arrays.
    """
    _ARRAYS = ('ids', 'positions', 'velocities', 'radii', 'subtypes', 'collected', 'collected_at')

    def __init__(self, category: Category, config: SimulationConfig, rng, width: float, height: float):
        self.category = category
        self.config = config
        self.rng = rng
        self.width = float(width)
        self.height = float(height)

        self.time = 0.0
        self._next_id = 0
        self._events: List[CollectionEvent] = []
        self._allocate_empty()

        logging.info(
            f"ParticleField[{category.value}] initialized: target {config.population_target}, "
            f"ceiling {config.population_limit:.1f}, viewport {self.width:.0f}x{self.height:.0f}."
        )

    def _allocate_empty(self):
        self.ids = np.zeros(0, dtype=np.int64)
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.radii = np.zeros(0, dtype=np.float64)
        self.subtypes = np.zeros(0, dtype=np.int8)
        self.collected = np.zeros(0, dtype=np.bool_)
        self.collected_at = np.zeros(0, dtype=np.float64)

    @property
    def particle_count(self) -> int:
        return int(self.ids.shape[0])

    @property
    def uncollected_count(self) -> int:
        return int(np.count_nonzero(~self.collected))

    def spawn(self) -> int:
        """
        Creates one particle just outside a randomly chosen screen edge.

        Returns:
            int: The id of the new particle.
        """
        edge = int(self.rng.integers(4))  # 0: top, 1: right, 2: bottom, 3: left
        along = float(self.rng.random())
        offset = self.config.spawn_offset

        if edge == 0:
            x, y = along * self.width, -offset
        elif edge == 1:
            x, y = self.width + offset, along * self.height
        elif edge == 2:
            x, y = along * self.width, self.height + offset
        else:
            x, y = -offset, along * self.height

        speed = self.config.initial_speed
        vx = float(self.rng.uniform(-speed, speed))
        vy = float(self.rng.uniform(-speed, speed))
        radius = float(self.rng.uniform(*self.config.radius_range))

        subtype = -1
        if self.category is Category.DEBRIS:
            subtype = int(self.rng.integers(len(DEBRIS_SUBTYPES)))

        particle_id = self._next_id
        self._next_id += 1

        self.ids = np.append(self.ids, np.int64(particle_id))
        self.positions = np.concatenate((self.positions, np.array([[x, y]], dtype=np.float64)))
        self.velocities = np.concatenate((self.velocities, np.array([[vx, vy]], dtype=np.float64)))
        self.radii = np.append(self.radii, radius)
        self.subtypes = np.append(self.subtypes, np.int8(subtype))
        self.collected = np.append(self.collected, False)
        self.collected_at = np.append(self.collected_at, 0.0)

        logging.debug(
            f"Spawned {self.category.value} particle {particle_id} on edge {edge} "
            f"at ({x:.1f}, {y:.1f}) with velocity ({vx:.2f}, {vy:.2f})."
        )
        return particle_id

    def spawn_if_room(self) -> Optional[int]:
        """The periodic spawn. Skipped once the uncollected population is at its ceiling."""
        if self.uncollected_count >= self.config.population_limit:
            return None
        return self.spawn()

    def populate(self):
        """Seeds the initial population up to the target."""
        while self.uncollected_count < self.config.population_target:
            self.spawn()
        logging.info(f"ParticleField[{self.category.value}] populated with {self.particle_count} particles.")

    def _cull(self):
        """
        Drops uncollected particles that drifted past the off-screen buffer and
        collected particles older than the retention window.
        """
        if self.particle_count == 0:
            return

        buffer = self.config.offscreen_buffer
        x = self.positions[:, 0]
        y = self.positions[:, 1]
        outside = (x < -buffer) | (x > self.width + buffer) | (y < -buffer) | (y > self.height + buffer)
        expired = self.collected & (self.time - self.collected_at > self.config.collected_retention)
        removed = (outside & ~self.collected) | expired

        if not removed.any():
            return

        survival_mask = ~removed
        for name in self._ARRAYS:
            setattr(self, name, getattr(self, name)[survival_mask])

        logging.debug(
            f"ParticleField[{self.category.value}] removed {int(removed.sum())} particle(s). "
            f"Remaining: {self.particle_count}."
        )

    def tick(self, pointer_pos: Tuple[float, float], pointer_active: bool, dt: float = 1.0 / FPS) -> List[CollectionEvent]:
        """
        Advances every uncollected particle by one simulation step.

        Args:
            pointer_pos: Pointer position in viewport coordinates.
            pointer_active: Whether the pointer is inside the viewport.
            dt: Seconds represented by this step. Only used to age collected
                particles and timestamp events; motion is per tick.

        Returns:
            List[CollectionEvent]: Events for the particles collected this step.
        """
        self.time += dt
        self._cull()
        if self.particle_count == 0:
            return []

        cfg = self.config
        newly_collected = _advance_particles_numba(
            self.positions, self.velocities, self.collected,
            float(pointer_pos[0]), float(pointer_pos[1]), bool(pointer_active),
            cfg.attraction_radius, cfg.collection_radius, cfg.attraction_force, cfg.damping,
            self.width, self.height, cfg.wrap_margin
        )

        events = []
        for i in np.flatnonzero(newly_collected):
            self.collected_at[i] = self.time
            events.append(CollectionEvent(self.category, self._subtype_at(i), 1, self.time))

        if events:
            self._events.extend(events)
            logging.debug(f"ParticleField[{self.category.value}] collected {len(events)} particle(s).")
        return events

    def _subtype_at(self, index: int) -> Optional[DebrisSubtype]:
        code = int(self.subtypes[index])
        return DEBRIS_SUBTYPES[code] if code >= 0 else None

    def collected_batch(self) -> List[CollectionEvent]:
        """Drains the events accumulated since the previous call."""
        batch, self._events = self._events, []
        return batch

    def snapshot(self) -> Tuple[ParticleView, ...]:
        return tuple(
            ParticleView(
                id=int(self.ids[i]),
                category=self.category,
                subtype=self._subtype_at(i),
                x=float(self.positions[i, 0]),
                y=float(self.positions[i, 1]),
                vx=float(self.velocities[i, 0]),
                vy=float(self.velocities[i, 1]),
                radius=float(self.radii[i]),
                collected=bool(self.collected[i]),
            )
            for i in range(self.particle_count)
        )

    def reset(self):
        """Forgets every particle and pending event, and restarts id numbering."""
        self._allocate_empty()
        self._events = []
        self._next_id = 0
        self.time = 0.0
        logging.info(f"ParticleField[{self.category.value}] reset.")
