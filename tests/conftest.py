import pytest

from chase_env import ChaseEnv, TickClock
from grid import Grid

LOOP_MAZE = [
    "#######",
    "#.....#",
    "#.#.#.#",
    "#.....#",
    "#######",
]

HOME_MAZE = [
    "#####",
    "#...#",
    "##-##",
    "#HHH#",
    "#####",
]

# Pellet then power pellet straight ahead of the player.
SCORE_MAZE = [
    "#########",
    "#P.o....#",
    "#.#####.#",
    "#.......#",
    "#########",
]

SCORE_GHOSTS = [
    {"id": 1, "name": "chaser", "spawn": (7, 3), "dir": "UP", "scatter": (7, 3)},
    {"id": 2, "name": "ambusher", "spawn": (1, 3), "dir": "UP", "scatter": (1, 3)},
]

CORRIDOR_MAZE = [
    "#######",
    "#P....#",
    "#######",
]

CORRIDOR_GHOSTS = [
    {"id": 1, "name": "chaser", "spawn": (3, 1), "dir": "LEFT", "scatter": (5, 1)},
]

CHASE_ONLY = [{"mode": "chase", "duration_ms": None}]


@pytest.fixture
def loop_grid():
    return Grid.from_rows(LOOP_MAZE)


@pytest.fixture
def home_grid():
    return Grid.from_rows(HOME_MAZE)


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def make_env(clock):
    def factory(maze=None, ghosts=None, seed=0, **config):
        env = ChaseEnv(config, maze=maze, ghost_template=ghosts, seed=seed, clock=clock)
        return env

    return factory
