from __future__ import annotations

import math

import numpy as np
import pytest

from particle import (
    Category,
    CollectionEvent,
    DebrisSubtype,
    ParticleField,
    SimulationConfig,
    element_symbol,
)

WIDTH = 800.0
HEIGHT = 600.0


def _field(rng: np.random.Generator, category: Category = Category.FUEL, **overrides) -> ParticleField:
    config = SimulationConfig(**overrides)
    return ParticleField(category, config, rng, WIDTH, HEIGHT)


def _place(field: ParticleField, x: float, y: float, vx: float = 0.0, vy: float = 0.0) -> int:
    """Spawns a particle and moves it to a known position and velocity."""
    field.spawn()
    index = field.particle_count - 1
    field.positions[index] = (x, y)
    field.velocities[index] = (vx, vy)
    return index


def test_particle_inside_collection_radius_is_collected_once(rng: np.random.Generator) -> None:
    field = _field(rng)
    index = _place(field, 100.0, 100.0, vx=0.5, vy=-0.5)

    events = field.tick((110.0, 100.0), True)
    assert len(events) == 1
    assert events[0].category is Category.FUEL
    assert events[0].amount == 1
    assert field.collected[index]

    frozen_position = field.positions[index].copy()
    frozen_velocity = field.velocities[index].copy()
    for _ in range(10):
        assert field.tick((110.0, 100.0), True) == []

    np.testing.assert_array_equal(field.positions[index], frozen_position)
    np.testing.assert_array_equal(field.velocities[index], frozen_velocity)
    assert field.collected_batch() == events


def test_inactive_pointer_never_collects(rng: np.random.Generator) -> None:
    field = _field(rng)
    _place(field, 100.0, 100.0)

    assert field.tick((100.0, 100.0), False) == []
    assert field.uncollected_count == 1


def test_damping_and_integration_without_pointer(rng: np.random.Generator) -> None:
    field = _field(rng)
    index = _place(field, 100.0, 100.0, vx=1.0, vy=-2.0)

    field.tick((0.0, 0.0), False)
    assert field.velocities[index] == pytest.approx([0.98, -1.96])
    assert field.positions[index] == pytest.approx([100.98, 98.04])


def test_attraction_pulls_toward_pointer(rng: np.random.Generator) -> None:
    field = _field(rng)
    index = _place(field, 100.0, 100.0)

    field.tick((200.0, 100.0), True)
    expected = (1 - 100.0 / 150.0) * 0.5 * 0.98
    assert field.velocities[index, 0] == pytest.approx(expected)
    assert field.velocities[index, 1] == pytest.approx(0.0)
    assert field.positions[index, 0] == pytest.approx(100.0 + expected)


def test_no_attraction_outside_radius(rng: np.random.Generator) -> None:
    field = _field(rng)
    index = _place(field, 100.0, 100.0)

    field.tick((400.0, 100.0), True)
    assert field.velocities[index] == pytest.approx([0.0, 0.0])


def test_zero_distance_skips_attraction(rng: np.random.Generator) -> None:
    field = _field(rng, collection_radius=0.0)
    index = _place(field, 300.0, 300.0, vx=1.0, vy=0.0)

    events = field.tick((300.0, 300.0), True)
    assert events == []
    assert np.all(np.isfinite(field.velocities[index]))
    assert field.velocities[index] == pytest.approx([0.98, 0.0])


def test_far_off_screen_particles_are_culled(rng: np.random.Generator) -> None:
    field = _field(rng)
    _place(field, -500.0, 100.0)
    _place(field, 400.0, 300.0)

    field.tick((0.0, 0.0), False)
    assert field.particle_count == 1
    assert field.positions[0] == pytest.approx([400.0, 300.0])


def test_near_edge_wraps_but_far_overshoot_drifts(rng: np.random.Generator) -> None:
    field = _field(rng)
    near = _place(field, -10.0, 100.0, vx=-1.0)
    far = _place(field, -60.0, 200.0, vx=-1.0)
    bottom = _place(field, 300.0, 599.5, vy=1.0)

    field.tick((0.0, 0.0), False)
    assert field.positions[near, 0] == pytest.approx(WIDTH)
    assert field.positions[far, 0] == pytest.approx(-60.98)
    assert field.positions[bottom, 1] == pytest.approx(0.0)


def test_spawn_starts_just_outside_an_edge(rng: np.random.Generator) -> None:
    field = _field(rng)
    for _ in range(200):
        field.spawn()

    xs = field.positions[:, 0]
    ys = field.positions[:, 1]
    on_edge = (ys == -20.0) | (xs == WIDTH + 20.0) | (ys == HEIGHT + 20.0) | (xs == -20.0)
    assert on_edge.all()
    assert np.all(np.abs(field.velocities) <= 1.0)
    assert np.all((field.radii >= 7.5) & (field.radii <= 12.5))
    assert list(field.ids) == list(range(200))


def test_debris_carries_a_subtype_and_fuel_does_not(rng: np.random.Generator) -> None:
    debris = _field(rng, Category.DEBRIS)
    fuel = _field(rng, Category.FUEL)
    for _ in range(40):
        debris.spawn()
        fuel.spawn()

    debris_views = debris.snapshot()
    assert all(view.subtype in DebrisSubtype for view in debris_views)
    assert len({view.subtype for view in debris_views}) > 1
    assert all(view.subtype is None for view in fuel.snapshot())


def test_collection_event_reports_debris_subtype(rng: np.random.Generator) -> None:
    field = _field(rng, Category.DEBRIS)
    index = _place(field, 50.0, 50.0)
    subtype = field.snapshot()[index].subtype

    (event,) = field.tick((50.0, 50.0), True)
    assert event == CollectionEvent(Category.DEBRIS, subtype, 1, event.timestamp)


def test_population_never_exceeds_ceiling(rng: np.random.Generator) -> None:
    field = _field(rng, population_target=10)
    field.populate()
    assert field.uncollected_count == 10

    for _ in range(100):
        field.spawn_if_room()
        field.tick((0.0, 0.0), False)
        assert field.uncollected_count <= 10 * 1.8

    assert field.uncollected_count == 18


def test_collected_particles_leave_after_retention(rng: np.random.Generator) -> None:
    field = _field(rng, collected_retention=1.0)
    _place(field, 100.0, 100.0)

    field.tick((100.0, 100.0), True, dt=0.1)
    assert field.particle_count == 1

    field.tick((0.0, 0.0), False, dt=0.5)
    assert field.particle_count == 1
    field.tick((0.0, 0.0), False, dt=0.6)
    assert field.particle_count == 0


def test_collected_batch_drains(rng: np.random.Generator) -> None:
    field = _field(rng)
    _place(field, 100.0, 100.0)
    _place(field, 105.0, 100.0)

    field.tick((100.0, 100.0), True)
    assert len(field.collected_batch()) == 2
    assert field.collected_batch() == []


def test_reset_restarts_id_numbering(rng: np.random.Generator) -> None:
    field = _field(rng)
    field.populate()
    _place(field, 100.0, 100.0)
    field.tick((100.0, 100.0), True)

    field.reset()
    assert field.particle_count == 0
    assert field.collected_batch() == []
    assert field.spawn() == 0


def test_invalid_config_is_rejected() -> None:
    with pytest.raises(ValueError, match="damping"):
        SimulationConfig(damping=1.2).validate()
    with pytest.raises(ValueError, match="collection radius"):
        SimulationConfig(collection_radius=200.0).validate()


def test_config_from_params_uses_category_defaults() -> None:
    fuel = SimulationConfig.from_params({}, Category.FUEL)
    debris = SimulationConfig.from_params({"populations": {"debris": 4}, "damping": 0.9}, Category.DEBRIS)

    assert fuel.population_target == 15
    assert math.isclose(fuel.population_limit, 27.0)
    assert debris.population_target == 4
    assert debris.damping == 0.9
    assert debris.radius_range == (9.0, 15.0)


def test_element_symbols() -> None:
    assert element_symbol(Category.FUEL) == "H"
    assert element_symbol(Category.DEBRIS, DebrisSubtype.SILICATE) == "Si"
    assert element_symbol(Category.DEBRIS, DebrisSubtype.CARBON) == "C"
    with pytest.raises(KeyError):
        element_symbol(Category.DEBRIS)
