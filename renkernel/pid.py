"""Process identifier allocation over a fixed-size bitmap."""

PID_NUM = 256
PID_BYTES = (PID_NUM + 7) >> 3
IDLE_PID = 0
INIT_PID = 1
PID_MIN = 1


class PidError(Exception):
    """Raised when a pid cannot be allocated or freed."""


class PidMap:
    """Tracks which process identifiers are in use."""

    def __init__(self):
        self._used = {IDLE_PID}
        self.next_pid = PID_MIN

    def check(self, pid):
        """Return True if ``pid`` is currently allocated."""
        if pid < 0 or pid >= PID_NUM:
            return False
        return pid in self._used

    def alloc(self):
        """Allocate the first free pid at or after the search cache."""
        candidate = self.next_pid
        for _ in range(PID_NUM):
            if candidate not in self._used:
                self._used.add(candidate)
                self.next_pid = (candidate + 1) % PID_NUM
                return candidate
            candidate = (candidate + 1) % PID_NUM
        raise PidError("no free pid left")

    def free(self, pid):
        """Release ``pid``; it must be allocated."""
        if not self.check(pid):
            raise PidError(f"pid {pid} is not allocated")
        self._used.discard(pid)

    def __contains__(self, pid):
        return self.check(pid)

    def __len__(self):
        return len(self._used)