from grid import MOVE_ORDER, CellKind, Direction, GhostState, HOME_KINDS, opposite
from pathfinder import find_first_step


class Player:
    def __init__(self, pos, direction=Direction.RIGHT):
        self.pos = pos
        self.dir = direction
        self.next_dir = direction
        self.mouth_open = True


class Ghost:
    def __init__(self, gid, name, pos, direction, scatter_target):
        self.id = gid
        self.name = name
        self.pos = pos
        self.dir = direction
        self.state = GhostState.NORMAL
        self.spawn = pos
        self.start_dir = direction
        self.scatter_target = scatter_target

    def reset(self):
        self.pos = self.spawn
        self.dir = self.start_dir
        self.state = GhostState.NORMAL

    def frighten(self):
        # A ghost with no heading ends up facing up.
        facing = self.dir if self.dir != Direction.NONE else Direction.DOWN
        self.dir = opposite(facing)
        self.state = GhostState.FRIGHTENED


def move_player(grid, player):
    """One-cell step with a buffered turn. Returns True if the player moved."""
    player.mouth_open = not player.mouth_open
    wanted = player.next_dir
    if wanted != Direction.NONE:
        nxt = grid.step(player.pos, wanted)
        if grid.walkable_for_player(nxt):
            player.dir = wanted
            player.pos = nxt
            return True
    if player.dir == Direction.NONE:
        return False
    nxt = grid.step(player.pos, player.dir)
    if not grid.walkable_for_player(nxt):
        return False
    player.pos = nxt
    return True


def _open(grid, ghost, direction):
    return grid.walkable_for_ghost(ghost.pos, grid.step(ghost.pos, direction), ghost.state)


def _open_outside_home(grid, pos, direction):
    kind = grid.classify(grid.step(pos, direction))
    return kind != CellKind.WALL and kind not in HOME_KINDS


def frightened_candidates(grid, ghost):
    """Directions a frightened ghost may pick from uniformly."""
    reverse = opposite(ghost.dir)
    choices = [d for d in MOVE_ORDER if d != reverse and _open_outside_home(grid, ghost.pos, d)]
    if choices:
        return choices
    if reverse != Direction.NONE and _open_outside_home(grid, ghost.pos, reverse):
        return [reverse]
    # Only reachable from inside the home.
    return [d for d in MOVE_ORDER if _open(grid, ghost, d)]


def fallback_direction(grid, ghost):
    """Keep going, else turn without reversing, else reverse, else None."""
    reverse = opposite(ghost.dir)
    if ghost.dir != Direction.NONE and _open(grid, ghost, ghost.dir):
        return ghost.dir
    for d in MOVE_ORDER:
        if d != reverse and _open(grid, ghost, d):
            return d
    if reverse != Direction.NONE and _open(grid, ghost, reverse):
        return reverse
    return None


def _eaten_fallback(grid, ghost):
    for d in (opposite(ghost.dir), ghost.dir):
        if d != Direction.NONE and _open(grid, ghost, d):
            return d
    for d in MOVE_ORDER:
        if _open(grid, ghost, d):
            return d
    return None


def _apply(grid, ghost, direction):
    if direction is None:
        return False
    ghost.dir = direction
    ghost.pos = grid.step(ghost.pos, direction)
    return True


def move_ghost(grid, ghost, target, rng):
    """Advance one ghost by at most one cell.

    ``target`` is only read for normal ghosts. Eaten ghosts head for their
    spawn and frightened ones wander using ``rng``.
    """
    if ghost.state == GhostState.EATEN:
        if ghost.pos == ghost.spawn:
            ghost.state = GhostState.NORMAL
            ghost.dir = Direction.UP
            return False
        direction = find_first_step(grid, ghost.pos, ghost.spawn, ghost.state)
        if direction is None:
            direction = _eaten_fallback(grid, ghost)
        return _apply(grid, ghost, direction)

    if ghost.state == GhostState.FRIGHTENED:
        choices = frightened_candidates(grid, ghost)
        return _apply(grid, ghost, rng.choice(choices) if choices else None)

    reverse = opposite(ghost.dir)
    direction = find_first_step(
        grid,
        ghost.pos,
        target,
        ghost.state,
        avoid=reverse if reverse != Direction.NONE else None,
    )
    if direction is None:
        direction = fallback_direction(grid, ghost)
    return _apply(grid, ghost, direction)
