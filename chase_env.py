import json
import os
import random
import time
from enum import Enum

from advisory import AdvisorySlot
from collisions import resolve_collisions
from grid import CellKind, Direction, GhostState, Grid, PELLET_KINDS, parse_maze
from modes import DEFAULT_SCHEDULE, ModeScheduler, schedule_ticks
from motion import Ghost, Player, move_ghost, move_player
from targeting import CHASE, target_for


BASE_MAZE = [
    "############################",
    "#............##............#",
    "#.####.#####.##.#####.####.#",
    "#o####.#####.##.#####.####o#",
    "#..........................#",
    "#.####.##.########.##.####.#",
    "#......##....##....##......#",
    "######.##### ## #####.######",
    "######.##### ## #####.######",
    "######.##          ##.######",
    "######.## ###--### ##.######",
    "      .   #HHHHHH#   .      ",
    "######.## #HHHHHH# ##.######",
    "######.## ######## ##.######",
    "######.##          ##.######",
    "######.## ######## ##.######",
    "#............##............#",
    "#.####.#####.##.#####.####.#",
    "#o..##.......  .......##..o#",
    "###.##.##.###P ###.##.##.###",
    "#......##....##....##......#",
    "#.##########.##.##########.#",
    "#..........................#",
    "############################",
]

GRID_W, GRID_H = len(BASE_MAZE[0]), len(BASE_MAZE)

GHOST_TEMPLATE = [
    {"id": 1, "name": "chaser", "spawn": (13, 9), "dir": "LEFT", "scatter": (GRID_W - 2, 1)},
    {"id": 2, "name": "ambusher", "spawn": (13, 12), "dir": "UP", "scatter": (1, 1)},
    {"id": 3, "name": "flanker", "spawn": (11, 12), "dir": "UP", "scatter": (GRID_W - 2, GRID_H - 2)},
    {"id": 4, "name": "feigner", "spawn": (15, 12), "dir": "UP", "scatter": (1, GRID_H - 2)},
]

DEFAULT_CONFIG = {
    "tick_ms": 150,
    "frightened_ticks": 40,
    "lives": 3,
    "life_lost_pause_ms": 1000,
    "pellet_score": 10,
    "power_pellet_score": 50,
    "ghost_score": 200,
    "ambush_offset": 4,
    "flank_offset": 2,
    "feigner_radius": 8,
    "mode_schedule": DEFAULT_SCHEDULE,
    "advisory_interval_ms": 2000,
    "advisory_timeout_ms": 5000,
    "advisory_validity_ms": 8000,
}

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.json")


class ConfigError(ValueError):
    pass


class GameState(Enum):
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    GAME_OVER = "game_over"
    LEVEL_WON = "level_won"


class TickClock:
    """Manual clock for headless runs and tests; seconds, like time.monotonic."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms / 1000.0


def load_config(path=CONFIG_PATH):
    """Defaults overlaid with the known keys of a JSON file beside the code."""
    cfg = DEFAULT_CONFIG.copy()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return cfg
    except json.JSONDecodeError as e:
        print(f"Ignoring unreadable config {path}: {e}")
        return cfg
    if isinstance(data, dict):
        cfg.update((k, v) for k, v in data.items() if k in cfg)
    return cfg


def _positive_int(cfg, key):
    value = cfg[key]
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{key} must be a positive integer, got {value!r}")
    return value


class ChaseEnv:
    def __init__(self, config=None, maze=None, ghost_template=None, seed=None, clock=None):
        cfg = DEFAULT_CONFIG.copy()
        cfg.update(config or {})
        self.config = cfg
        for key in ("tick_ms", "frightened_ticks", "lives"):
            _positive_int(cfg, key)
        if cfg["life_lost_pause_ms"] < 0:
            raise ConfigError("life_lost_pause_ms must not be negative")

        self.base_maze = maze or BASE_MAZE
        try:
            self.base_cells, self.player_start = parse_maze(self.base_maze)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if self.player_start is None:
            raise ConfigError("maze has no player start 'P'")
        self.grid_w = len(self.base_cells[0])
        self.grid_h = len(self.base_cells)
        self.total_pellets = sum(1 for row in self.base_cells for kind in row if kind in PELLET_KINDS)
        if self.total_pellets == 0:
            raise ConfigError("maze has no pellets")

        self.ghost_template = self._check_template(ghost_template or GHOST_TEMPLATE)
        try:
            entries = schedule_ticks(cfg["mode_schedule"], cfg["tick_ms"])
        except ValueError as e:
            raise ConfigError(str(e)) from e

        self.rng = random.Random(seed)
        self.clock = clock or time.monotonic
        self.scheduler = ModeScheduler(entries, cfg["frightened_ticks"])
        self.advisory = AdvisorySlot(
            cfg["advisory_validity_ms"],
            cfg["advisory_timeout_ms"],
            clock=self.clock,
            ghost_ids=[t["id"] for t in self.ghost_template],
        )
        self.reset_game()

    def _check_template(self, template):
        grid = Grid(self.base_cells)
        seen = set()
        for entry in template:
            gid = entry["id"]
            if gid in seen:
                raise ConfigError(f"duplicate ghost id {gid}")
            seen.add(gid)
            spawn = tuple(entry["spawn"])
            if not (0 <= spawn[0] < self.grid_w and 0 <= spawn[1] < self.grid_h):
                raise ConfigError(f"ghost {gid} spawn {spawn} is off the board")
            if grid.classify(spawn) == CellKind.WALL:
                raise ConfigError(f"ghost {gid} spawns inside a wall at {spawn}")
            if entry.get("dir", "NONE") not in Direction.__members__:
                raise ConfigError(f"ghost {gid} has unknown direction {entry['dir']!r}")
        return list(template)

    def reset_game(self):
        self.grid = Grid(self.base_cells)
        self.score = 0
        self.lives = self.config["lives"]
        self.pellets_eaten = 0
        self.tick_count = 0
        self.resume_at = None
        self.scheduler.reset()
        self.reset_actors()
        self.game_state = GameState.READY

    def reset_actors(self):
        self.player = Player(self.player_start)
        self.ghosts = [
            Ghost(
                t["id"],
                t.get("name", f"ghost{t['id']}"),
                tuple(t["spawn"]),
                Direction[t.get("dir", "NONE")],
                tuple(t["scatter"]),
            )
            for t in self.ghost_template
        ]
        self.scheduler.clear_frightened()
        self.advisory.invalidate("actors reset")

    @property
    def ghost_mode(self):
        return self.scheduler.mode

    def set_desired_direction(self, direction):
        self.player.next_dir = direction

    def request_start(self):
        if self.game_state in (GameState.GAME_OVER, GameState.LEVEL_WON):
            self.reset_game()
        if self.game_state == GameState.READY:
            self.game_state = GameState.PLAYING
            return True
        return False

    def lose_life(self):
        self.lives -= 1
        if self.lives <= 0:
            self.lives = 0
            self.game_state = GameState.GAME_OVER
            return
        self.game_state = GameState.PAUSED
        self.resume_at = self.clock() + self.config["life_lost_pause_ms"] / 1000.0

    def win_level(self):
        self.game_state = GameState.LEVEL_WON

    def update(self):
        """Resume from a life-loss pause once its wall-clock delay has passed."""
        if self.game_state != GameState.PAUSED or self.resume_at is None:
            return False
        if self.clock() < self.resume_at:
            return False
        self.resume_at = None
        # Input given during the pause carries over to the first tick.
        wanted = self.player.next_dir
        self.reset_actors()
        self.player.next_dir = wanted
        self.game_state = GameState.PLAYING
        return True

    def wants_advice(self):
        return (
            self.game_state == GameState.PLAYING
            and self.ghost_mode == CHASE
            and not self.scheduler.frightened_active
        )

    def tick(self):
        if self.game_state != GameState.PLAYING:
            return None
        self.tick_count += 1
        prev_score = self.score
        prev_lives = self.lives

        move_player(self.grid, self.player)

        mode = self.ghost_mode
        advice = self.advisory.targets() if mode == CHASE else None
        positions = {g.id: g.pos for g in self.ghosts}
        offsets = {k: self.config[k] for k in ("ambush_offset", "flank_offset", "feigner_radius")}
        for ghost in self.ghosts:
            target = None
            if ghost.state == GhostState.NORMAL:
                target = target_for(ghost, mode, self.player, positions, advice, **offsets)
            move_ghost(self.grid, ghost, target, self.rng)

        events = resolve_collisions(self)

        if self.game_state == GameState.PLAYING and self.scheduler.advance():
            for ghost in self.ghosts:
                if ghost.state == GhostState.FRIGHTENED:
                    ghost.state = GhostState.NORMAL
            self.advisory.invalidate("frightened expired")
            events["frightened_expired"] = True

        events["score_delta"] = self.score - prev_score
        events["lives_delta"] = self.lives - prev_lives
        events["done"] = self.is_terminal()
        return events

    def is_terminal(self):
        return self.game_state in (GameState.GAME_OVER, GameState.LEVEL_WON)

    def advisory_request(self):
        planes, labels, _ = self.get_observation()
        return {
            "tick": self.tick_count,
            "grid_w": self.grid_w,
            "grid_h": self.grid_h,
            "pacman": {"x": self.player.pos[0], "y": self.player.pos[1], "dir": self.player.dir.name},
            "ghosts": [
                {"id": g.id, "x": g.pos[0], "y": g.pos[1], "state": g.state.value} for g in self.ghosts
            ],
            "planes": planes,
            "labels": labels,
        }

    def get_state(self):
        return {
            "grid_w": self.grid_w,
            "grid_h": self.grid_h,
            "board": self.grid.rows(),
            "tick": self.tick_count,
            "score": self.score,
            "lives": self.lives,
            "pellets_eaten": self.pellets_eaten,
            "total_pellets": self.total_pellets,
            "game_state": self.game_state.value,
            "ghost_mode": self.ghost_mode,
            "frightened_remaining": self.scheduler.frightened,
            "advisory_active": self.advisory.active,
            "advisory_status": self.advisory.status,
            "player": {
                "x": self.player.pos[0],
                "y": self.player.pos[1],
                "dir": self.player.dir.name,
                "next_dir": self.player.next_dir.name,
                "mouth_open": self.player.mouth_open,
            },
            "ghosts": [
                {
                    "id": g.id,
                    "name": g.name,
                    "x": g.pos[0],
                    "y": g.pos[1],
                    "dir": g.dir.name,
                    "state": g.state.value,
                }
                for g in self.ghosts
            ],
        }

    def get_observation(self):
        def blank():
            return [[0 for _ in range(self.grid_w)] for _ in range(self.grid_h)]

        walls = blank()
        pellets = blank()
        power = blank()
        home = blank()
        player = blank()
        frightened = blank()
        eaten = blank()
        ghost_planes = {t["id"]: blank() for t in self.ghost_template}

        for y, row in enumerate(self.grid.cells):
            for x, kind in enumerate(row):
                if kind == CellKind.WALL:
                    walls[y][x] = 1
                elif kind == CellKind.PELLET:
                    pellets[y][x] = 1
                elif kind == CellKind.POWER_PELLET:
                    power[y][x] = 1
                elif self.grid.is_home((x, y)):
                    home[y][x] = 1

        px, py = self.player.pos
        player[py][px] = 1
        for g in self.ghosts:
            gx, gy = g.pos
            ghost_planes[g.id][gy][gx] = 1
            if g.state == GhostState.FRIGHTENED:
                frightened[gy][gx] = 1
            elif g.state == GhostState.EATEN:
                eaten[gy][gx] = 1

        planes = [walls, pellets, power, home, player, frightened, eaten]
        labels = ["walls", "pellets", "power", "home", "player", "frightened", "eaten"]
        for gid, plane in ghost_planes.items():
            planes.append(plane)
            labels.append(f"ghost_{gid}")
        # Player heading as four constant planes.
        for d in (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT):
            value = 1 if self.player.dir == d else 0
            planes.append([[value] * self.grid_w for _ in range(self.grid_h)])
            labels.append(f"heading_{d.name.lower()}")

        scalars = {
            "score": self.score,
            "lives": self.lives,
            "pellet_progress": self.pellets_eaten / float(self.total_pellets),
            "frightened": self.scheduler.frightened / float(self.config["frightened_ticks"]),
            "chase": 1.0 if self.ghost_mode == CHASE else 0.0,
        }
        return planes, labels, scalars
