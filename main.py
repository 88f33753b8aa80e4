# main.py
"""
Main entry point for Stellar Nursery.

This script orchestrates the session lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Sets up the visualizer, the particle fields and the session.
4. Runs the frame loop until the user quits.
5. Handles clean shutdown.
"""
import logging
import sys
import cProfile
import pstats
import io

import numpy as np

from utils import setup_logging, load_config, config_section


def main(config_path: str = 'config.json'):
    """
    The main function to run a session.
    """
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Stellar Nursery Starting ---")

    sim_params = config_section(config, 'simulation_parameters')
    session_params = config_section(config, 'session_parameters')
    run_params = config_section(config, 'run_control')
    vis_params = config_section(config, 'visualization')

    from constants import FPS, FULLSCREEN
    from simulation import Simulation
    from visualization import Visualizer

    # All randomness flows from one seeded generator.
    seed = config.get('seed')
    rng = np.random.default_rng(seed)
    logging.info(f"Master RNG initialized with seed: {seed}")

    # The visualizer decides the playfield size.
    visualizer = Visualizer(fullscreen=vis_params.get('fullscreen', FULLSCREEN))
    sim = Simulation(sim_params, session_params, visualizer.sim_width, visualizer.sim_height, rng)
    sim.session.subscribe(lambda change: logging.info(
        f"Stage is now '{change.stage.value}'"
        + (f" ({change.star_type.value})" if change.star_type else "")
    ))

    profiler = cProfile.Profile() if run_params.get('profile', False) else None

    log_throttle = run_params.get('log_throttle_steps', 300)
    max_steps = run_params.get('max_steps', 0)  # 0 runs until the user quits

    step_num = 0
    if profiler:
        profiler.enable()
    while True:
        sample = visualizer.poll(sim)
        if sample is None:
            break

        dt = visualizer.clock.tick(FPS) / 1000.0
        sim.update(sample, dt)
        visualizer.draw(sim, sample)
        step_num += 1

        # Hot loops must throttle logs
        if step_num % log_throttle == 0:
            session = sim.session
            logging.info(
                f"Frame {step_num} | stage {session.stage.value} | "
                f"fuel {session.state.fuel:g} | debris {session.state.debris:g}"
            )
            logging.debug(
                "Particles: " + ", ".join(
                    f"{category.value}={field.uncollected_count}" for category, field in sim.fields.items()
                )
            )

        if max_steps and step_num >= max_steps:
            logging.info(f"Reached max_steps ({max_steps}). Stopping.")
            break
    if profiler:
        profiler.disable()

    visualizer.close()
    logging.info("Frame loop finished.")

    if profiler:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    logging.info("--- Stellar Nursery Shutting Down ---")


if __name__ == "__main__":
    main(*sys.argv[1:2])
