import json
import sys
import threading
import time

DEBUG = True

GHOST_IDS = (1, 2, 3, 4)

OFFLINE = "offline"
IDLE = "idle"
THINKING = "thinking"
ACTIVE = "active"
ERROR = "error"


class AdvisoryError(ValueError):
    pass


def debug(msg):
    if DEBUG:
        print(f"[advisory] {msg}")
        sys.stdout.flush()


def _as_int(value, what):
    if isinstance(value, bool):
        raise AdvisoryError(f"{what} is not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise AdvisoryError(f"{what} is not an integer: {value!r}")


def _as_cell(value, gid):
    if isinstance(value, dict):
        if "x" not in value or "y" not in value:
            raise AdvisoryError(f"target for ghost {gid} lacks x/y: {value!r}")
        x, y = value["x"], value["y"]
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        x, y = value
    else:
        raise AdvisoryError(f"target for ghost {gid} is not a cell: {value!r}")
    if isinstance(x, bool) or isinstance(y, bool) or not isinstance(x, int) or not isinstance(y, int):
        raise AdvisoryError(f"target for ghost {gid} has non-integer coordinates: {value!r}")
    return (x, y)


def parse_advisory(payload, ghost_ids=GHOST_IDS):
    """Validate a suggested-target payload into ``{ghost_id: (x, y)}``.

    Accepts JSON text, a mapping of id to ``[x, y]`` or ``{"x", "y"}``, a list
    of ``{"id", "x", "y"}`` objects, or either wrapped as ``{"targets": ...}``.
    Every id in ``ghost_ids`` must be present; extra ids are dropped.
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise AdvisoryError(f"payload is not JSON: {e}") from e
    if isinstance(payload, dict) and "targets" in payload:
        payload = payload["targets"]

    if isinstance(payload, list):
        entries = {}
        for item in payload:
            if not isinstance(item, dict) or "id" not in item:
                raise AdvisoryError(f"list entry without id: {item!r}")
            entries[_as_int(item["id"], "ghost id")] = item
        payload = entries
    if not isinstance(payload, dict) or not payload:
        raise AdvisoryError(f"payload is not a non-empty mapping: {payload!r}")

    targets = {}
    for key, value in payload.items():
        gid = _as_int(key, "ghost id")
        if gid in ghost_ids:
            targets[gid] = _as_cell(value, gid)
    missing = [gid for gid in ghost_ids if gid not in targets]
    if missing:
        raise AdvisoryError(f"payload is missing ghost ids {missing}")
    return targets


class AdvisorySlot:
    """Single latest-advice cell shared between the tick loop and advisor threads.

    Each request gets a generation token. A result is accepted only for the
    current token, within the timeout, and is served until the validity
    window closes. Issuing a new request or rejecting its answer clears the
    previous targets. Invalidation bumps the generation so in-flight results
    are dropped on arrival.
    """

    def __init__(self, validity_ms=8000, timeout_ms=5000, clock=time.monotonic, ghost_ids=GHOST_IDS):
        self.ghost_ids = tuple(ghost_ids)
        self.validity = validity_ms / 1000.0
        self.timeout = timeout_ms / 1000.0
        self.clock = clock
        self.lock = threading.Lock()
        self.generation = 0
        self.status = OFFLINE
        self._targets = None
        self._expires_at = None
        self._pending = None

    def set_online(self):
        with self.lock:
            if self.status == OFFLINE:
                self.status = IDLE

    def set_offline(self):
        with self.lock:
            self.generation += 1
            self._targets = None
            self._expires_at = None
            self._pending = None
            self.status = OFFLINE

    @property
    def busy(self):
        with self.lock:
            return self._pending is not None

    def begin(self):
        with self.lock:
            self.generation += 1
            # A new request supersedes whatever the last one returned.
            self._targets = None
            self._expires_at = None
            self._pending = (self.generation, self.clock())
            self.status = THINKING
            return self.generation

    def offer(self, token, payload):
        try:
            targets = parse_advisory(payload, self.ghost_ids)
        except AdvisoryError as e:
            self.fail(token, f"rejected: {e}")
            return False
        now = self.clock()
        with self.lock:
            if self._pending is None or self._pending[0] != token or token != self.generation:
                stale = True
            else:
                stale = False
                issued = self._pending[1]
                self._pending = None
                if now - issued > self.timeout:
                    self._targets = None
                    self._expires_at = None
                    self.status = ERROR
                    timed_out = True
                else:
                    timed_out = False
                    self._targets = targets
                    self._expires_at = now + self.validity
                    self.status = ACTIVE
        if stale:
            debug(f"dropped stale result for request {token}")
            return False
        if timed_out:
            debug(f"request {token} answered after {now - issued:.2f}s, over the timeout")
            return False
        return True

    def fail(self, token, reason):
        with self.lock:
            current = self._pending is not None and self._pending[0] == token
            if current:
                self._pending = None
                self._targets = None
                self._expires_at = None
                self.status = ERROR
        debug(f"request {token} failed: {reason}")

    def check_timeout(self):
        """Cancel a pending request that has run past the timeout."""
        now = self.clock()
        with self.lock:
            if self._pending is None or now - self._pending[1] <= self.timeout:
                return False
            token = self._pending[0]
            self._pending = None
            self._targets = None
            self._expires_at = None
            self.generation += 1
            self.status = ERROR
        debug(f"request {token} timed out")
        return True

    def invalidate(self, reason=""):
        with self.lock:
            had_targets = self._targets is not None
            self.generation += 1
            self._targets = None
            self._expires_at = None
            self._pending = None
            if self.status != OFFLINE:
                self.status = IDLE
        if had_targets and reason:
            debug(f"targets invalidated: {reason}")

    def targets(self):
        with self.lock:
            if self._targets is None:
                return None
            if self.clock() >= self._expires_at:
                self._targets = None
                self._expires_at = None
                if self.status == ACTIVE:
                    self.status = IDLE
                return None
            return dict(self._targets)

    @property
    def active(self):
        return self.targets() is not None


class AdvisoryClient:
    """Asks a provider for targets on its own cadence, one daemon thread per call.

    ``poll`` is called from the host loop and never waits on the provider.
    """

    def __init__(self, provider, slot, interval_ms=2000, clock=None):
        self.provider = provider
        self.slot = slot
        self.interval = interval_ms / 1000.0
        self.clock = clock or slot.clock
        self.running = False
        self.last_request = None
        self.thread = None

    def start(self):
        self.running = True
        self.slot.set_online()

    def stop(self):
        self.running = False
        self.slot.set_offline()

    def poll(self, env):
        if not self.running:
            return None
        self.slot.check_timeout()
        if self.slot.busy or not env.wants_advice():
            return None
        now = self.clock()
        if self.last_request is not None and now - self.last_request < self.interval:
            return None
        request = env.advisory_request()
        token = self.slot.begin()
        self.last_request = now
        self.thread = threading.Thread(target=self._run, args=(token, request), daemon=True)
        self.thread.start()
        return self.thread

    def _run(self, token, request):
        try:
            payload = self.provider(request)
        except Exception as e:
            self.slot.fail(token, f"provider error: {e!r}")
            return
        self.slot.offer(token, payload)

    def join(self, timeout=None):
        if self.thread is not None:
            self.thread.join(timeout=timeout)
