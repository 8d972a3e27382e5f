import argparse
import json
import os
import random
import time
from datetime import datetime

from chase_env import ChaseEnv, GameState, TickClock, load_config
from grid import MOVE_ORDER, opposite

LOG_PATH = os.path.join(os.path.dirname(__file__), "chase_log.jsonl")


def random_turn(env, rng, turn_prob=0.15):
    """Pick a buffered direction the way a restless player would."""
    player = env.player
    grid = env.grid
    open_dirs = [d for d in MOVE_ORDER if grid.walkable_for_player(grid.step(player.pos, d))]
    if not open_dirs:
        return player.next_dir
    ahead_open = player.dir in open_dirs
    if ahead_open and rng.random() >= turn_prob:
        return player.dir
    turns = [d for d in open_dirs if d != opposite(player.dir)] or open_dirs
    return rng.choice(turns)


def run_episode(cfg, seed=None, max_ticks=3000, turn_prob=0.15, on_tick=None):
    clock = TickClock()
    env = ChaseEnv(cfg, seed=seed, clock=clock)
    rng = random.Random(seed)
    env.request_start()
    ticks = 0
    deaths = 0
    ghosts_eaten = 0
    while not env.is_terminal() and ticks < max_ticks:
        clock.advance(cfg["tick_ms"])
        if env.game_state == GameState.PAUSED:
            env.update()
            continue
        env.set_desired_direction(random_turn(env, rng, turn_prob))
        if on_tick is not None:
            on_tick(env)
        events = env.tick()
        ticks += 1
        if events["life_lost"]:
            deaths += 1
        ghosts_eaten += len(events["ghosts_eaten"])

    if env.game_state == GameState.LEVEL_WON:
        outcome = "won"
    elif env.game_state == GameState.GAME_OVER:
        outcome = "lost"
    else:
        outcome = "timeout"
    return {
        "ticks": ticks,
        "score": env.score,
        "lives": env.lives,
        "deaths": deaths,
        "ghosts_eaten": ghosts_eaten,
        "pellets_eaten": env.pellets_eaten,
        "total_pellets": env.total_pellets,
        "outcome": outcome,
    }


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--episodes", type=int, default=5)
    parser.add_argument("--max-ticks", type=int, default=3000)
    parser.add_argument("--turn-prob", type=float, default=0.15)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", default=None)
    parser.add_argument("--log", default=LOG_PATH)
    parser.add_argument("--no-log", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config) if args.config else load_config()
    base_seed = args.seed if args.seed is not None else int(time.time())

    for ep in range(args.episodes):
        seed = base_seed + ep
        start = time.time()
        result = run_episode(cfg, seed=seed, max_ticks=args.max_ticks, turn_prob=args.turn_prob)
        elapsed = time.time() - start
        print(
            f"ep={ep} seed={seed} ticks={result['ticks']} score={result['score']} "
            f"pellets={result['pellets_eaten']}/{result['total_pellets']} "
            f"deaths={result['deaths']} outcome={result['outcome']} ({elapsed:.2f}s)"
        )
        if not args.no_log:
            row = {"time": datetime.now().isoformat(timespec="seconds"), "episode": ep, "seed": seed}
            row.update(result)
            with open(args.log, "a", encoding="utf-8") as f:
                f.write(json.dumps(row) + "\n")


if __name__ == "__main__":
    main()
