from grid import CellKind, GhostState


def resolve_collisions(env):
    """Settle one tick's pellet, win and ghost contact outcomes, in that order.

    Returns an event dict. At most one life is lost per call, and nothing
    else is scored once it is.
    """
    cfg = env.config
    events = {"pellet": None, "ghosts_eaten": [], "life_lost": False, "level_won": False}
    pos = env.player.pos

    kind = env.grid.consume(pos)
    if kind is not None:
        env.pellets_eaten = min(env.total_pellets, env.pellets_eaten + 1)
        events["pellet"] = kind.name.lower()
        if kind == CellKind.PELLET:
            env.score += cfg["pellet_score"]
        else:
            env.score += cfg["power_pellet_score"]
            env.scheduler.start_frightened()
            for ghost in env.ghosts:
                if ghost.state != GhostState.EATEN:
                    ghost.frighten()
            env.advisory.invalidate("frightened")

    if env.pellets_eaten >= env.total_pellets:
        env.win_level()
        events["level_won"] = True
        return events

    for ghost in env.ghosts:
        if ghost.pos != pos:
            continue
        if ghost.state == GhostState.FRIGHTENED:
            env.score += cfg["ghost_score"]
            ghost.state = GhostState.EATEN
            events["ghosts_eaten"].append(ghost.id)
        elif ghost.state == GhostState.NORMAL:
            env.lose_life()
            events["life_lost"] = True
            break
    return events
