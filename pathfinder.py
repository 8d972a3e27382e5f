from collections import deque

from grid import MOVE_ORDER


def find_first_step(grid, start, goal, ghost_state, avoid=None):
    """Breadth-first search from ``start`` to ``goal`` over ghost-walkable cells.

    Returns the first direction of a shortest path, or ``None`` when the goal
    cannot be reached. Neighbors are expanded Up, Down, Left, Right at every
    node, which decides between equal-length paths. ``avoid`` drops one
    direction from the first step only. The goal is only ever matched against
    generated neighbors, so ``start == goal`` yields ``None``.
    """
    if start == goal:
        return None
    width = grid.width
    visited = bytearray(width * grid.height)
    visited[start[1] * width + start[0]] = 1
    queue = deque()

    for direction in MOVE_ORDER:
        if direction == avoid:
            continue
        nxt = grid.step(start, direction)
        if not grid.walkable_for_ghost(start, nxt, ghost_state):
            continue
        if nxt == goal:
            return direction
        idx = nxt[1] * width + nxt[0]
        if visited[idx]:
            continue
        visited[idx] = 1
        queue.append((nxt, direction))

    while queue:
        pos, first = queue.popleft()
        for direction in MOVE_ORDER:
            nxt = grid.step(pos, direction)
            idx = nxt[1] * width + nxt[0]
            if visited[idx]:
                continue
            if not grid.walkable_for_ghost(pos, nxt, ghost_state):
                continue
            if nxt == goal:
                return first
            visited[idx] = 1
            queue.append((nxt, first))
    return None
