# constants.py
"""
Application-level constants.

These values are static and do not change between sessions. They cover the
window, frame rate and colours; gameplay tuning lives in config.json.
"""

# Visualization settings
# Set to True to run in borderless fullscreen mode.
# Set to False to run in a fixed-size window (WINDOW_WIDTH x WINDOW_HEIGHT).
FULLSCREEN = False
WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 720
UI_PANEL_WIDTH = 320
FPS = 60
TITLE = "Stellar Nursery"
BACKGROUND_COLOR = (8, 6, 24) # Deep space violet

# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 70
# Ratio of the halo size to the particle radius.
PARTICLE_HALO_RATIO = 2
PARTICLE_HALO_ALPHA = 50
UI_BACKGROUND_ALPHA = 140

# Particle colours (RGB)
FUEL_COLOR = (30, 144, 255)     # Dodger blue, hydrogen
DEBRIS_COLORS = {
    "iron": (205, 133, 63),     # Sandy brown
    "silicate": (230, 230, 250),# Lavender
    "nickel": (176, 196, 222),  # Light steel blue
    "carbon": (105, 105, 105),  # Dim gray
}

# Star colours shown once the outcome is known
STAR_COLORS = {
    "red_dwarf": (220, 38, 38),
    "yellow_dwarf": (250, 204, 21),
    "blue_giant": (96, 165, 250),
    "neutron_star": (196, 181, 253),
    "failed": (107, 114, 128),
}

# Warning overlay for dangerous control values (RGBA)
WARNING_OVERLAY_COLOR = (239, 68, 68, 40)
CRITICAL_OVERLAY_COLOR = (239, 68, 68, 90)

# UI palette
TEXT_COLOR = (255, 255, 255)
TEXT_COLOR_MUTED = (200, 200, 200)
BAR_BACKGROUND = (55, 65, 81)
BAR_OK_COLOR = (34, 197, 94)
BAR_DANGER_COLOR = (239, 68, 68)
ATTRACTION_RING_COLOR = (255, 255, 255, 50)

# Keyboard slider step per key press
SLIDER_STEP = 5
