# visualization.py
"""
Handles the pygame front end: drawing the session and sampling user input.
"""
import logging
import pygame
from typing import Dict, Optional, Tuple

from constants import (
    ATTRACTION_RING_COLOR, BACKGROUND_COLOR, BAR_BACKGROUND, BAR_DANGER_COLOR,
    BAR_OK_COLOR, CRITICAL_OVERLAY_COLOR, DEBRIS_COLORS, FUEL_COLOR, FULLSCREEN,
    MOTION_BLUR_ALPHA, PARTICLE_HALO_ALPHA, PARTICLE_HALO_RATIO, SLIDER_STEP,
    STAR_COLORS, TEXT_COLOR, TEXT_COLOR_MUTED, TITLE, UI_BACKGROUND_ALPHA,
    UI_PANEL_WIDTH, WARNING_OVERLAY_COLOR, WINDOW_HEIGHT, WINDOW_WIDTH
)
from particle import Category, DebrisSubtype, ParticleView, element_symbol
from session import Stage, WarningLevel
from simulation import InputSample, Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, fullscreen: bool = FULLSCREEN):
#     - Side Effects: Initializes Pygame and creates a display surface.
#       sim_width/sim_height give the playfield size for the Simulation.
#
#   - poll(self, simulation: Simulation) -> Optional[InputSample]:
#     - Outputs: The input for this frame, or None if the user has quit.
#
#   - draw(self, simulation: Simulation, sample: InputSample) -> None:
#     - Side Effects: Renders particles, the forming star and the UI panel.

# Core radius of the forming star per stage.
_STAR_RADII = {
    Stage.COLLECTING: 0,
    Stage.COLLAPSING: 20,
    Stage.IGNITING: 50,
    Stage.COMPLETE: 100,
    Stage.FAILED: 60,
}

_WARNING_OVERLAYS = {
    WarningLevel.NONE: None,
    WarningLevel.WARNING: WARNING_OVERLAY_COLOR,
    WarningLevel.CRITICAL: CRITICAL_OVERLAY_COLOR,
}


class Visualizer:
    """
    Renders the session state and turns mouse/keyboard events into InputSamples.
    """
    def __init__(self, fullscreen: bool = FULLSCREEN):
        pygame.init()
        pygame.font.init()

        if fullscreen:
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = WINDOW_WIDTH + UI_PANEL_WIDTH, WINDOW_HEIGHT
            self.screen = pygame.display.set_mode((width, height))

        # The playfield is the total width minus the UI panel
        self.sim_width = width - UI_PANEL_WIDTH
        self.sim_height = height

        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        # Blitted over the playfield every frame to fade the previous one into trails.
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.blur_surface.fill((*BACKGROUND_COLOR, MOTION_BLUR_ALPHA))
        self.overlay_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)

        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        pygame.display.set_caption(TITLE)
        pygame.key.set_repeat(250, 40)
        self.clock = pygame.time.Clock()

        try:
            self.font_title = pygame.font.SysFont("Segoe UI", 18, bold=True)
            self.font_main = pygame.font.SysFont("Segoe UI", 14)
            self.font_label = pygame.font.SysFont("Segoe UI", 11, bold=True)
        except pygame.error:
            logging.warning("Segoe UI font not found, falling back to default sans-serif.")
            self.font_title = pygame.font.SysFont(None, 22, bold=True)
            self.font_main = pygame.font.SysFont(None, 18)
            self.font_label = pygame.font.SysFont(None, 14, bold=True)

        self.colors = self._initialize_colors()
        self._halo_cache: Dict[Tuple[Tuple[int, int, int], int], pygame.Surface] = {}
        self.panel_x = self.sim_width + 20
        self.panel_width = UI_PANEL_WIDTH - 40

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _initialize_colors(self) -> Dict[Tuple[Category, Optional[DebrisSubtype]], pygame.Color]:
        colors = {(Category.FUEL, None): pygame.Color(FUEL_COLOR)}
        for subtype in DebrisSubtype:
            colors[(Category.DEBRIS, subtype)] = pygame.Color(DEBRIS_COLORS[subtype.value])
        return colors

    def _halo(self, color: pygame.Color, radius: int) -> pygame.Surface:
        """Halo surfaces are cached per colour and radius."""
        key = ((color.r, color.g, color.b), radius)
        halo_surf = self._halo_cache.get(key)
        if halo_surf is None:
            halo_radius = radius * PARTICLE_HALO_RATIO
            halo_surf = pygame.Surface((halo_radius * 2, halo_radius * 2), pygame.SRCALPHA)
            pygame.draw.circle(
                halo_surf,
                (color.r, color.g, color.b, PARTICLE_HALO_ALPHA),
                (halo_radius, halo_radius),
                halo_radius
            )
            self._halo_cache[key] = halo_surf
        return halo_surf

    # --- Input sampling ---

    def poll(self, simulation: Simulation) -> Optional[InputSample]:
        """
        Handles pygame events for this frame.

        Returns:
            Optional[InputSample]: None if the user has quit.
        """
        state = simulation.session.state
        config = simulation.session.config
        mouse_pos = pygame.mouse.get_pos()
        pointer_active = bool(pygame.mouse.get_focused()) and mouse_pos[0] < self.sim_width

        temperature = gravity = None
        ignite = restart = False

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return None

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    logging.info("ESC key pressed. Shutting down visualizer.")
                    return None
                if event.key == pygame.K_SPACE:
                    ignite = True
                elif event.key == pygame.K_r:
                    restart = True
                elif event.key in (pygame.K_UP, pygame.K_DOWN):
                    step = SLIDER_STEP if event.key == pygame.K_UP else -SLIDER_STEP
                    current = state.temperature if temperature is None else temperature
                    temperature = min(max(current + step, 0), config.temperature_max)
                elif event.key in (pygame.K_RIGHT, pygame.K_LEFT):
                    step = SLIDER_STEP if event.key == pygame.K_RIGHT else -SLIDER_STEP
                    current = state.gravity if gravity is None else gravity
                    gravity = min(max(current + step, 0), config.gravity_max)

        return InputSample(
            pointer=(float(mouse_pos[0]), float(mouse_pos[1])),
            pointer_active=pointer_active,
            temperature=temperature,
            gravity=gravity,
            ignite=ignite,
            restart=restart,
        )

    # --- Drawing ---

    def _draw_particle(self, particle: ParticleView):
        color = self.colors[(particle.category, particle.subtype)]
        radius = max(1, int(particle.radius))
        center = (int(particle.x), int(particle.y))

        halo_surf = self._halo(color, radius)
        halo_radius = radius * PARTICLE_HALO_RATIO
        self.sim_surface.blit(halo_surf, (center[0] - halo_radius, center[1] - halo_radius))
        pygame.draw.circle(self.sim_surface, color, center, radius)

        label = self.font_label.render(element_symbol(particle.category, particle.subtype), True, TEXT_COLOR)
        self.sim_surface.blit(label, label.get_rect(center=center))

    def _draw_star(self, simulation: Simulation):
        session = simulation.session
        radius = _STAR_RADII[session.stage]
        if radius == 0:
            return
        star_type = session.state.star_type
        if session.stage is Stage.COLLAPSING or star_type is None:
            color = (255, 150, 0)
        else:
            color = STAR_COLORS[star_type.value]
        center = (self.sim_width // 2, self.sim_height // 2)
        pygame.draw.circle(self.sim_surface, color, center, radius)

    def _draw_bar(self, y: int, label: str, percent: int, danger: bool = False, suffix: str = "") -> int:
        text = self.font_main.render(f"{label}  {percent}%{suffix}", True, TEXT_COLOR)
        self.screen.blit(text, (self.panel_x, y))
        y += text.get_height() + 4
        track = pygame.Rect(self.panel_x, y, self.panel_width, 10)
        pygame.draw.rect(self.screen, BAR_BACKGROUND, track, border_radius=5)
        fill = track.copy()
        fill.width = int(track.width * percent / 100)
        if fill.width > 0:
            pygame.draw.rect(self.screen, BAR_DANGER_COLOR if danger else BAR_OK_COLOR, fill, border_radius=5)
        return y + 20

    def _render_text_wrapped(self, text: str, font: pygame.font.Font, max_width: int, color: tuple) -> list:
        """
        Renders text, wrapping it to a new line if it exceeds max_width.
        Returns a list of rendered surfaces, one for each line.
        """
        lines = []
        current_line = ""
        for word in text.split(' '):
            test_line = f"{current_line} {word}".strip()
            if font.size(test_line)[0] <= max_width:
                current_line = test_line
            else:
                lines.append(current_line)
                current_line = word
        lines.append(current_line)
        return [font.render(line, True, color) for line in lines if line]

    def _draw_paragraph(self, y: int, text: str, color: tuple = TEXT_COLOR_MUTED) -> int:
        for surf in self._render_text_wrapped(text, self.font_main, self.panel_width, color):
            self.screen.blit(surf, (self.panel_x, y))
            y += self.font_main.get_linesize()
        return y + 8

    def _draw_panel(self, simulation: Simulation):
        session = simulation.session
        state = session.state
        config = session.config

        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        y = 20
        for surf in self._render_text_wrapped(session.title(), self.font_title, self.panel_width, TEXT_COLOR):
            self.screen.blit(surf, (self.panel_x, y))
            y += self.font_title.get_linesize()
        y += 14

        if session.stage is Stage.COLLECTING:
            y = self._draw_bar(y, "Hydrogen", session.progress(Category.FUEL),
                               suffix=f"  (+{state.fuel_rate:.0f}/s)")
            y = self._draw_bar(y, "Dust", session.progress(Category.DEBRIS),
                               suffix=f"  (+{state.debris_rate:.0f}/s)")
            if state.collapse_pending:
                y = self._draw_paragraph(y, "The cloud begins to collapse...", TEXT_COLOR)
        elif session.stage is Stage.COLLAPSING:
            temp_feedback, grav_feedback = session.feedback()
            temp_ratio, grav_ratio = session.ratios()
            y = self._draw_bar(y, f"Temperature {state.temperature:.0f} - {temp_feedback}",
                               min(int(temp_ratio * 100), 100), danger=temp_ratio > 1.2)
            y = self._draw_bar(y, f"Gravity {state.gravity:.0f} - {grav_feedback}",
                               min(int(grav_ratio * 100), 100), danger=grav_ratio > 1.2)
            y = self._draw_paragraph(
                y, f"Targets: temperature {config.temperature_target:g}, gravity {config.gravity_target:g}."
            )
        elif session.stage is Stage.IGNITING:
            y = self._draw_paragraph(y, "Fusion is beginning! Star is forming...", TEXT_COLOR)
        elif session.stage is Stage.COMPLETE:
            y = self._draw_paragraph(y, "Congratulations! You've created a star!", TEXT_COLOR)
        elif session.stage is Stage.FAILED:
            y = self._draw_paragraph(y, "The formation process has become unstable!", BAR_DANGER_COLOR)

        if session.description():
            y = self._draw_paragraph(y, session.description())
        if state.hint:
            y = self._draw_paragraph(y, state.hint, TEXT_COLOR)

        help_lines = (
            "Up/Down: temperature   Left/Right: gravity",
            "Space: ignite   R: restart   Esc: quit",
        )
        y = self.sim_height - 20 - len(help_lines) * self.font_main.get_linesize()
        for line in help_lines:
            self.screen.blit(self.font_main.render(line, True, TEXT_COLOR_MUTED), (self.panel_x, y))
            y += self.font_main.get_linesize()

    def draw(self, simulation: Simulation, sample: InputSample):
        """
        Draws the playfield and the UI panel.
        """
        self.sim_surface.blit(self.blur_surface, (0, 0))

        if simulation.stage is Stage.COLLECTING:
            for particle in simulation.snapshot():
                if not particle.collected:
                    self._draw_particle(particle)
            if sample.pointer_active:
                ring_radius = int(simulation.fields[Category.FUEL].config.attraction_radius)
                self.overlay_surface.fill((0, 0, 0, 0))
                pygame.draw.circle(self.overlay_surface, ATTRACTION_RING_COLOR,
                                   (int(sample.pointer[0]), int(sample.pointer[1])), ring_radius, 2)
                self.sim_surface.blit(self.overlay_surface, (0, 0))

        self._draw_star(simulation)

        overlay_color = _WARNING_OVERLAYS[simulation.session.warning()]
        if overlay_color is not None:
            self.overlay_surface.fill(overlay_color)
            self.sim_surface.blit(self.overlay_surface, (0, 0))

        self.screen.blit(self.sim_surface, (0, 0))
        self._draw_panel(simulation)
        pygame.display.flip()

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
