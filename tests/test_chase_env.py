import json
import random

import pytest

from chase_env import BASE_MAZE, ChaseEnv, ConfigError, DEFAULT_CONFIG, GameState, TickClock, load_config
from grid import Direction, GhostState
from conftest import CHASE_ONLY, CORRIDOR_GHOSTS, CORRIDOR_MAZE, SCORE_GHOSTS, SCORE_MAZE

WIN_MAZE = [
    "######",
    "#P.  #",
    "######",
]

WIN_GHOSTS = [{"id": 1, "name": "chaser", "spawn": (4, 1), "dir": "LEFT", "scatter": (4, 1)}]


def test_default_env_starts_ready(make_env):
    env = make_env()
    assert env.game_state == GameState.READY
    assert env.total_pellets == env.grid.remaining_pellets() > 0
    assert (env.grid_w, env.grid_h) == (len(BASE_MAZE[0]), len(BASE_MAZE))
    assert [g.id for g in env.ghosts] == [1, 2, 3, 4]
    assert env.player.pos == (13, 19)
    assert env.tick() is None
    assert env.tick_count == 0


def test_request_start_only_from_ready_or_finished(make_env):
    env = make_env()
    assert env.request_start()
    assert env.game_state == GameState.PLAYING
    assert not env.request_start()
    env.game_state = GameState.GAME_OVER
    env.score = 990
    assert env.request_start()
    assert env.game_state == GameState.PLAYING
    assert env.score == 0
    assert env.lives == DEFAULT_CONFIG["lives"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tick_ms": 0},
        {"lives": True},
        {"frightened_ticks": -1},
        {"life_lost_pause_ms": -1},
        {"mode_schedule": []},
        {"mode_schedule": [{"mode": "chase", "duration_ms": 1000}]},
        {"maze": ["#####", "#...#", "#####"]},
        {"maze": ["#####", "#P  #", "#####"]},
        {"maze": ["#####", "#P.#"]},
        {"maze": SCORE_MAZE, "ghosts": SCORE_GHOSTS + [dict(SCORE_GHOSTS[0])]},
        {"maze": SCORE_MAZE, "ghosts": [{"id": 1, "spawn": (0, 0), "dir": "UP", "scatter": (1, 1)}]},
        {"maze": SCORE_MAZE, "ghosts": [{"id": 1, "spawn": (1, 3), "dir": "NORTH", "scatter": (1, 1)}]},
        {"maze": SCORE_MAZE, "ghosts": [{"id": 1, "spawn": (40, 3), "dir": "UP", "scatter": (1, 1)}]},
    ],
)
def test_bad_setup_raises_config_error(make_env, kwargs):
    with pytest.raises(ConfigError):
        make_env(**kwargs)


def test_load_config_merges_known_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tick_ms": 100, "lives": 5, "colour": "red"}))
    cfg = load_config(str(path))
    assert cfg["tick_ms"] == 100
    assert cfg["lives"] == 5
    assert cfg["pellet_score"] == DEFAULT_CONFIG["pellet_score"]
    assert "colour" not in cfg


def test_load_config_falls_back_to_defaults(tmp_path, capsys):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    assert load_config(str(broken)) == DEFAULT_CONFIG
    assert "Ignoring unreadable config" in capsys.readouterr().out
    assert load_config(str(tmp_path / "missing.json")) == DEFAULT_CONFIG


def test_pellet_then_power_pellet_then_expiry(make_env):
    env = make_env(SCORE_MAZE, SCORE_GHOSTS, mode_schedule=CHASE_ONLY, frightened_ticks=2)
    env.request_start()

    events = env.tick()
    assert env.player.pos == (2, 1)
    assert events["score_delta"] == 10
    assert [g.pos for g in env.ghosts] == [(7, 2), (1, 2)]

    events = env.tick()
    assert events["pellet"] == "power_pellet"
    assert env.score == 60
    assert all(g.state == GhostState.FRIGHTENED for g in env.ghosts)
    assert all(g.dir == Direction.DOWN for g in env.ghosts)

    events = env.tick()
    assert env.score == 70
    assert events.get("frightened_expired")
    assert all(g.state == GhostState.NORMAL for g in env.ghosts)
    assert not env.scheduler.frightened_active


def test_collision_with_last_life_is_game_over(make_env):
    env = make_env(CORRIDOR_MAZE, CORRIDOR_GHOSTS, mode_schedule=CHASE_ONLY, lives=1)
    env.request_start()
    events = env.tick()
    assert events["life_lost"]
    assert events["lives_delta"] == -1
    assert events["done"]
    assert env.game_state == GameState.GAME_OVER
    score = env.score
    assert env.tick() is None
    assert env.score == score


def test_life_loss_pauses_then_resets_actors(make_env, clock):
    env = make_env(CORRIDOR_MAZE, CORRIDOR_GHOSTS, mode_schedule=CHASE_ONLY, lives=2)
    env.request_start()
    env.tick()
    assert env.game_state == GameState.PAUSED
    assert env.lives == 1
    assert env.tick() is None

    clock.advance(500)
    assert not env.update()
    assert env.game_state == GameState.PAUSED
    clock.advance(500)
    assert env.update()
    assert env.game_state == GameState.PLAYING
    assert env.player.pos == (1, 1)
    assert env.ghosts[0].pos == (3, 1)
    # Eaten pellets and score survive the reset.
    assert env.score == 10
    assert env.grid.remaining_pellets() == env.total_pellets - 1


def test_eating_the_last_pellet_wins(make_env):
    env = make_env(WIN_MAZE, WIN_GHOSTS, mode_schedule=CHASE_ONLY)
    env.request_start()
    events = env.tick()
    assert events["level_won"]
    assert events["done"]
    assert env.game_state == GameState.LEVEL_WON
    assert env.tick() is None
    assert env.request_start()
    assert env.grid.remaining_pellets() == 1
    assert env.score == 0


def play(env, clock, seed, ticks):
    rng = random.Random(seed)
    env.request_start()
    history = []
    for _ in range(ticks):
        if env.is_terminal():
            break
        if env.game_state == GameState.PAUSED:
            clock.advance(env.config["life_lost_pause_ms"])
            env.update()
            continue
        if rng.random() < 0.2:
            env.set_desired_direction(rng.choice([Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT]))
        env.tick()
        history.append((env.score, env.pellets_eaten, env.grid.remaining_pellets()))
    return history


def test_pellets_and_score_never_go_backwards(make_env, clock):
    env = make_env(seed=11)
    history = play(env, clock, 5, 600)
    assert history
    last_score = 0
    last_eaten = 0
    for score, eaten, remaining in history:
        assert score >= last_score
        assert eaten >= last_eaten
        assert eaten + remaining == env.total_pellets
        last_score, last_eaten = score, eaten


def test_same_seed_same_game():
    states = []
    for _ in range(2):
        tick_clock = TickClock()
        env = ChaseEnv(seed=4, clock=tick_clock)
        play(env, tick_clock, 9, 400)
        states.append(env.get_state())
    assert states[0] == states[1]


def test_advice_steers_normal_ghosts(make_env):
    env = make_env(SCORE_MAZE, SCORE_GHOSTS, mode_schedule=CHASE_ONLY)
    env.request_start()
    env.advisory.set_online()
    token = env.advisory.begin()
    assert env.advisory.offer(token, {"targets": {"1": [1, 3], "2": [1, 3]}})
    env.tick()
    # Without advice the chaser would go up toward the player.
    assert env.ghosts[0].dir == Direction.LEFT
    assert env.ghosts[0].pos == (6, 3)


def test_advice_expires_after_validity_window(make_env, clock):
    env = make_env(SCORE_MAZE, SCORE_GHOSTS, mode_schedule=CHASE_ONLY)
    env.advisory.set_online()
    token = env.advisory.begin()
    env.advisory.offer(token, {"1": [1, 3], "2": [1, 3]})
    clock.advance(DEFAULT_CONFIG["advisory_validity_ms"])
    assert env.advisory.targets() is None


def test_wants_advice_only_while_chasing(make_env):
    env = make_env()
    assert not env.wants_advice()
    env.request_start()
    assert env.ghost_mode == "scatter"
    assert not env.wants_advice()

    chasing = make_env(mode_schedule=CHASE_ONLY)
    chasing.request_start()
    assert chasing.wants_advice()
    chasing.scheduler.start_frightened()
    assert not chasing.wants_advice()


def test_state_snapshot(make_env):
    env = make_env()
    state = env.get_state()
    assert state["game_state"] == "ready"
    assert state["ghost_mode"] == "scatter"
    assert len(state["board"]) == env.grid_h
    assert state["player"] == {"x": 13, "y": 19, "dir": "RIGHT", "next_dir": "RIGHT", "mouth_open": True}
    assert [g["name"] for g in state["ghosts"]] == ["chaser", "ambusher", "flanker", "feigner"]
    json.dumps(state)


def test_observation_planes(make_env):
    env = make_env()
    planes, labels, scalars = env.get_observation()
    assert len(planes) == len(labels) == 7 + 4 + 4
    for plane in planes:
        assert len(plane) == env.grid_h
        assert all(len(row) == env.grid_w for row in plane)
    assert planes[labels.index("player")][19][13] == 1
    assert planes[labels.index("ghost_1")][9][13] == 1
    assert planes[labels.index("heading_right")][0][0] == 1
    assert scalars["lives"] == 3
    assert scalars["pellet_progress"] == 0.0


def test_advisory_request_is_json_ready(make_env):
    env = make_env()
    request = env.advisory_request()
    assert request["pacman"] == {"x": 13, "y": 19, "dir": "RIGHT"}
    assert [g["id"] for g in request["ghosts"]] == [1, 2, 3, 4]
    json.dumps(request)


def test_malformed_advice_leaves_ghosts_on_baseline(make_env):
    baseline = make_env(mode_schedule=CHASE_ONLY)
    advised = make_env(mode_schedule=CHASE_ONLY)
    for env in (baseline, advised):
        env.request_start()
    advised.advisory.set_online()
    token = advised.advisory.begin()
    assert not advised.advisory.offer(token, {"1": [1, 1], "2": [1, 1], "3": [1, 1]})
    for _ in range(5):
        baseline.tick()
        advised.tick()
        assert [(g.pos, g.dir) for g in advised.ghosts] == [(g.pos, g.dir) for g in baseline.ghosts]


def test_input_during_pause_drives_first_tick_after_resume(make_env, clock):
    env = make_env(SCORE_MAZE, SCORE_GHOSTS[:1], mode_schedule=CHASE_ONLY)
    env.request_start()
    env.lose_life()
    assert env.game_state == GameState.PAUSED
    env.set_desired_direction(Direction.DOWN)
    clock.advance(env.config["life_lost_pause_ms"])
    assert env.update()
    assert env.player.pos == (1, 1)
    assert env.player.next_dir == Direction.DOWN
    env.tick()
    assert env.player.pos == (1, 2)
    assert env.player.dir == Direction.DOWN


def test_rejected_advice_drops_earlier_advice(make_env):
    baseline = make_env(SCORE_MAZE, SCORE_GHOSTS, mode_schedule=CHASE_ONLY)
    advised = make_env(SCORE_MAZE, SCORE_GHOSTS, mode_schedule=CHASE_ONLY)
    for env in (baseline, advised):
        env.request_start()
    advised.advisory.set_online()
    token = advised.advisory.begin()
    assert advised.advisory.offer(token, {"1": [1, 3], "2": [1, 3]})
    token = advised.advisory.begin()
    assert not advised.advisory.offer(token, {"1": [1, 3]})
    baseline.tick()
    advised.tick()
    assert (advised.ghosts[0].pos, advised.ghosts[0].dir) == ((7, 2), Direction.UP)
    assert [(g.pos, g.dir) for g in advised.ghosts] == [(g.pos, g.dir) for g in baseline.ghosts]
