from targeting import SCATTER, CHASE

MODES = (SCATTER, CHASE)

DEFAULT_SCHEDULE = [
    {"mode": SCATTER, "duration_ms": 7000},
    {"mode": CHASE, "duration_ms": 20000},
    {"mode": SCATTER, "duration_ms": 7000},
    {"mode": CHASE, "duration_ms": 20000},
    {"mode": SCATTER, "duration_ms": 5000},
    {"mode": CHASE, "duration_ms": 20000},
    {"mode": SCATTER, "duration_ms": 5000},
    {"mode": CHASE, "duration_ms": None},
]


def schedule_ticks(schedule, tick_ms):
    """Convert a millisecond schedule into ``(mode, ticks)`` pairs.

    ``None`` ticks mean the entry never ends. Raises ``ValueError`` on an
    unknown mode, a non-positive duration, or an unbounded entry anywhere but
    last.
    """
    if not schedule:
        raise ValueError("mode schedule is empty")
    entries = []
    last = len(schedule) - 1
    for i, entry in enumerate(schedule):
        mode = entry.get("mode")
        if mode not in MODES:
            raise ValueError(f"schedule entry {i} has unknown mode {mode!r}")
        duration = entry.get("duration_ms")
        if duration is None:
            if i != last:
                raise ValueError(f"schedule entry {i} is unbounded but not last")
            entries.append((mode, None))
            continue
        if duration <= 0:
            raise ValueError(f"schedule entry {i} has non-positive duration {duration}")
        if i == last:
            raise ValueError("final schedule entry must be unbounded")
        entries.append((mode, max(1, int(round(duration / tick_ms)))))
    return entries


class ModeScheduler:
    """Scatter/chase timeline with the frightened countdown laid over it.

    While frightened ticks remain, the scatter/chase countdown is held.
    """

    def __init__(self, entries, frightened_ticks):
        self.entries = list(entries)
        self.frightened_ticks = frightened_ticks
        self.reset()

    def reset(self):
        self.index = 0
        self.remaining = self.entries[0][1]
        self.frightened = 0

    @property
    def mode(self):
        return self.entries[self.index][0]

    @property
    def frightened_active(self):
        return self.frightened > 0

    def start_frightened(self):
        self.frightened = self.frightened_ticks

    def clear_frightened(self):
        self.frightened = 0

    def advance(self):
        """Advance one tick. Returns True on the tick the frightened overlay expires."""
        if self.frightened > 0:
            self.frightened -= 1
            return self.frightened == 0

        if self.remaining is None:
            return False
        self.remaining -= 1
        if self.remaining <= 0:
            self.index = (self.index + 1) % len(self.entries)
            self.remaining = self.entries[self.index][1]
        return False
