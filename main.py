import argparse
import sys

import pygame

from advisor_model import MODEL_PATH, ModelAdvisor
from advisory import ACTIVE, ERROR, THINKING, AdvisoryClient
from chase_env import ChaseEnv, GameState, load_config
from grid import CellKind, Direction, GhostState

TILE = 24
FPS = 60
HUD_H = 28

BLACK = (10, 10, 15)
BLUE = (40, 60, 200)
DOOR = (230, 180, 220)
YELLOW = (250, 215, 70)
WHITE = (240, 240, 240)
RED = (220, 60, 60)
PINK = (255, 105, 180)
CYAN = (80, 220, 220)
ORANGE = (255, 165, 60)
FRIGHT_BLUE = (60, 70, 220)
GREY = (140, 140, 140)

GHOST_COLORS = {1: RED, 2: PINK, 3: CYAN, 4: ORANGE}
STATUS_COLORS = {ACTIVE: (90, 220, 120), THINKING: YELLOW, ERROR: RED}

KEY_DIRS = {
    pygame.K_UP: Direction.UP,
    pygame.K_w: Direction.UP,
    pygame.K_DOWN: Direction.DOWN,
    pygame.K_s: Direction.DOWN,
    pygame.K_LEFT: Direction.LEFT,
    pygame.K_a: Direction.LEFT,
    pygame.K_RIGHT: Direction.RIGHT,
    pygame.K_d: Direction.RIGHT,
}

MESSAGES = {
    GameState.READY: "Press Enter to Start",
    GameState.GAME_OVER: "Game Over! Press Enter to Restart",
    GameState.LEVEL_WON: "You Win! Press Enter to Play Again",
}


def draw_ghost(screen, ghost):
    x, y = ghost.pos
    cx = x * TILE + TILE // 2
    cy = y * TILE + TILE // 2
    if ghost.state != GhostState.EATEN:
        color = FRIGHT_BLUE if ghost.state == GhostState.FRIGHTENED else GHOST_COLORS.get(ghost.id, WHITE)
        body_rect = pygame.Rect(x * TILE + 2, y * TILE + 2, TILE - 4, TILE - 4)
        pygame.draw.rect(screen, color, body_rect, border_radius=6)
    pygame.draw.circle(screen, WHITE, (cx - 5, cy - 3), 4)
    pygame.draw.circle(screen, WHITE, (cx + 5, cy - 3), 4)
    dx, dy = ghost.dir.value
    pygame.draw.circle(screen, BLUE, (cx - 5 + dx * 2, cy - 3 + dy * 2), 2)
    pygame.draw.circle(screen, BLUE, (cx + 5 + dx * 2, cy - 3 + dy * 2), 2)


def draw_player(screen, player):
    x, y = player.pos
    center = (x * TILE + TILE // 2, y * TILE + TILE // 2)
    pygame.draw.circle(screen, YELLOW, center, TILE // 2 - 2)
    if player.mouth_open and player.dir != Direction.NONE:
        dx, dy = player.dir.value
        r = TILE // 2
        tip = (center[0] + dx * r, center[1] + dy * r)
        side_a = (tip[0] + dy * r // 2, tip[1] + dx * r // 2)
        side_b = (tip[0] - dy * r // 2, tip[1] - dx * r // 2)
        pygame.draw.polygon(screen, BLACK, [center, side_a, side_b])


def draw(screen, env):
    screen.fill(BLACK)
    width = env.grid_w * TILE
    height = env.grid_h * TILE

    for y, row in enumerate(env.grid.cells):
        for x, kind in enumerate(row):
            cx = x * TILE + TILE // 2
            cy = y * TILE + TILE // 2
            if kind == CellKind.WALL:
                pygame.draw.rect(screen, BLUE, pygame.Rect(x * TILE, y * TILE, TILE, TILE))
            elif kind == CellKind.GHOST_HOME_DOOR:
                pygame.draw.rect(screen, DOOR, pygame.Rect(x * TILE, cy - 2, TILE, 4))
            elif kind == CellKind.PELLET:
                pygame.draw.circle(screen, WHITE, (cx, cy), 3)
            elif kind == CellKind.POWER_PELLET:
                pygame.draw.circle(screen, WHITE, (cx, cy), 7)

    draw_player(screen, env.player)
    for ghost in env.ghosts:
        draw_ghost(screen, ghost)

    font = pygame.font.SysFont("Arial", 18)
    hud = font.render(
        f"Score: {env.score:06d}  Lives: {env.lives}  Pellets: {env.pellets_eaten}/{env.total_pellets}  "
        f"Mode: {'frightened' if env.scheduler.frightened_active else env.ghost_mode}",
        True,
        WHITE,
    )
    screen.blit(hud, (8, height + 5))

    status = env.advisory.status
    label = font.render(f"Advisor: {status}", True, STATUS_COLORS.get(status, GREY))
    screen.blit(label, (width - label.get_width() - 8, height + 5))

    message = MESSAGES.get(env.game_state)
    if message:
        overlay = pygame.Surface((width, height), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 150))
        screen.blit(overlay, (0, 0))
        big = pygame.font.SysFont("Arial", 36)
        text = big.render(message, True, YELLOW)
        screen.blit(text, (width // 2 - text.get_width() // 2, height // 2 - text.get_height() // 2))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--advisor", choices=["none", "model"], default="none")
    parser.add_argument("--model", default=None, help="advisor checkpoint (defaults to advisor_model.pt)")
    parser.add_argument("--fps", type=int, default=FPS)
    parser.add_argument("--device", default=None, help="torch device for the advisor (cpu, cuda, mps)")
    args = parser.parse_args()

    cfg = load_config(args.config) if args.config else load_config()
    env = ChaseEnv(cfg, seed=args.seed)

    client = None
    if args.advisor == "model":
        provider = ModelAdvisor(args.model or MODEL_PATH, device=args.device)
        client = AdvisoryClient(provider, env.advisory, interval_ms=cfg["advisory_interval_ms"])
        client.start()

    pygame.init()
    screen = pygame.display.set_mode((env.grid_w * TILE, env.grid_h * TILE + HUD_H))
    pygame.display.set_caption("Maze Chase")
    clock = pygame.time.Clock()
    tick_ms = cfg["tick_ms"]
    pending_ms = 0

    running = True
    while running:
        dt = clock.tick(args.fps)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                    env.request_start()
                elif event.key in KEY_DIRS:
                    env.set_desired_direction(KEY_DIRS[event.key])

        env.update()
        if client is not None:
            client.poll(env)

        if env.game_state == GameState.PLAYING:
            pending_ms += dt
            while pending_ms >= tick_ms and env.game_state == GameState.PLAYING:
                env.tick()
                pending_ms -= tick_ms
        else:
            pending_ms = 0

        draw(screen, env)
        pygame.display.flip()

    if client is not None:
        client.stop()
    pygame.quit()
    sys.exit()


if __name__ == "__main__":
    main()
