from enum import Enum


class Direction(Enum):
    UP = (0, -1)
    DOWN = (0, 1)
    LEFT = (-1, 0)
    RIGHT = (1, 0)
    NONE = (0, 0)


# Expansion order for pathfinding and fallbacks.
MOVE_ORDER = [Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT]

OPPOSITE = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
    Direction.NONE: Direction.NONE,
}


def opposite(direction):
    return OPPOSITE[direction]


class CellKind(Enum):
    WALL = "#"
    PATH = " "
    PELLET = "."
    POWER_PELLET = "o"
    GHOST_HOME = "H"
    GHOST_HOME_DOOR = "-"


class GhostState(Enum):
    NORMAL = "normal"
    FRIGHTENED = "frightened"
    EATEN = "eaten"


HOME_KINDS = (CellKind.GHOST_HOME, CellKind.GHOST_HOME_DOOR)
PELLET_KINDS = (CellKind.PELLET, CellKind.POWER_PELLET)
PLAYER_START = "P"


def parse_maze(rows):
    """Turn maze strings into a cell grid and the player start cell.

    ``P`` marks the player start and is an empty path cell. Raises
    ``ValueError`` for an empty or ragged layout and for unknown characters.
    """
    if not rows or not rows[0]:
        raise ValueError("maze is empty")
    width = len(rows[0])
    cells = []
    player_start = None
    for y, row in enumerate(rows):
        if len(row) != width:
            raise ValueError(f"maze row {y} has width {len(row)}, expected {width}")
        line = []
        for x, ch in enumerate(row):
            if ch == PLAYER_START:
                player_start = (x, y)
                line.append(CellKind.PATH)
                continue
            try:
                line.append(CellKind(ch))
            except ValueError:
                raise ValueError(f"unknown maze character {ch!r} at ({x}, {y})") from None
        cells.append(line)
    return cells, player_start


class Grid:
    def __init__(self, cells):
        self.cells = [list(row) for row in cells]
        self.height = len(self.cells)
        self.width = len(self.cells[0]) if self.cells else 0

    @classmethod
    def from_rows(cls, rows):
        cells, _ = parse_maze(rows)
        return cls(cells)

    def classify(self, pos):
        x, y = pos
        if 0 <= x < self.width and 0 <= y < self.height:
            return self.cells[y][x]
        # Unreachable after wrap; out of range counts as blocked.
        return CellKind.WALL

    def step(self, pos, direction):
        dx, dy = direction.value
        return ((pos[0] + dx) % self.width, (pos[1] + dy) % self.height)

    def is_home(self, pos):
        return self.classify(pos) in HOME_KINDS

    def walkable_for_player(self, pos):
        kind = self.classify(pos)
        return kind != CellKind.WALL and kind not in HOME_KINDS

    def walkable_for_ghost(self, src, dst, ghost_state):
        kind = self.classify(dst)
        if kind == CellKind.WALL:
            return False
        if kind in HOME_KINDS and not self.is_home(src):
            return ghost_state == GhostState.EATEN
        return True

    def consume(self, pos):
        kind = self.classify(pos)
        if kind not in PELLET_KINDS:
            return None
        x, y = pos
        self.cells[y][x] = CellKind.PATH
        return kind

    def remaining_pellets(self):
        return sum(1 for row in self.cells for kind in row if kind in PELLET_KINDS)

    def rows(self):
        return ["".join(kind.value for kind in row) for row in self.cells]
