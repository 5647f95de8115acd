from __future__ import annotations

from huntermaze.common.types import Personality

# Grid
INITIAL_GRID_SIZE = 15
MIN_SHRINK_SIZE = 8
BASE_CELL_SIZE = 40.0
WORLD_SPAN = 600.0

# Session clock (seconds)
MAX_TIME = 120.0
SHRINK_INTERVAL = 20.0
COMBO_WINDOW = 5.0

# Scoring
BASE_TAG_SCORE = 100
TIME_BONUS_FACTOR = 2.0
COMBO_STEP = 0.5

# Entities
PLAYER_RADIUS = 6.0
PLAYER_SPEED = 3.0
DIAGONAL_FACTOR = 0.707
GHOST_RADIUS = 7.0
TAG_RADIUS = 20.0

# Ghost AI
FLEE_DISTANCE = 150.0
RANDOM_REHEAD_PROB = 0.05
PATROL_REHEAD_PROB = 0.02
PATROL_SPEED_FACTOR = 0.5
BOUNCE_FACTOR = -0.5
WOBBLE_STEP = 0.2

GHOST_SPEEDS = {
    Personality.FAST: 4.0,
    Personality.RANDOM: 2.5,
    Personality.SMART: 3.0,
    Personality.BALANCED: 3.0,
}

GHOST_COLORS = {
    Personality.FAST: "#FF0000",
    Personality.RANDOM: "#00BFFF",
    Personality.SMART: "#00FF00",
    Personality.BALANCED: "#FFD700",
}
