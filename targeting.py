import math

from grid import GhostState

SCATTER = "scatter"
CHASE = "chase"

CHASER, AMBUSHER, FLANKER, FEIGNER = 1, 2, 3, 4

AMBUSH_OFFSET = 4
FLANK_OFFSET = 2
FEIGNER_RADIUS = 8


def ahead(pos, direction, tiles):
    dx, dy = direction.value
    return (pos[0] + dx * tiles, pos[1] + dy * tiles)


def chase_target(
    ghost_id,
    pacman_pos,
    pacman_dir,
    ghost_positions,
    scatter_target=None,
    ambush_offset=AMBUSH_OFFSET,
    flank_offset=FLANK_OFFSET,
    feigner_radius=FEIGNER_RADIUS,
):
    """Chase-mode destination for a ghost, picked by its fixed identity.

    ``ghost_positions`` maps ghost id to its current cell. Targets are not
    clamped to the board.
    """
    if ghost_id == CHASER:
        return pacman_pos
    if ghost_id == AMBUSHER:
        return ahead(pacman_pos, pacman_dir, ambush_offset)
    if ghost_id == FLANKER:
        chaser = ghost_positions.get(CHASER)
        if chaser is None:
            return pacman_pos
        pivot = ahead(pacman_pos, pacman_dir, flank_offset)
        return (pivot[0] + (pivot[0] - chaser[0]), pivot[1] + (pivot[1] - chaser[1]))
    if ghost_id == FEIGNER:
        own = ghost_positions.get(FEIGNER)
        if own is None or scatter_target is None:
            return pacman_pos
        distance = math.hypot(own[0] - pacman_pos[0], own[1] - pacman_pos[1])
        return pacman_pos if distance > feigner_radius else scatter_target
    return pacman_pos


def target_for(ghost, mode, pacman, ghost_positions, advisory=None, **offsets):
    if mode == SCATTER:
        return ghost.scatter_target
    if advisory and ghost.state == GhostState.NORMAL and ghost.id in advisory:
        return advisory[ghost.id]
    return chase_target(
        ghost.id,
        pacman.pos,
        pacman.dir,
        ghost_positions,
        scatter_target=ghost.scatter_target,
        **offsets,
    )
