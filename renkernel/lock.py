"""A minimal spin lock with a waiter list."""

from collections import deque


class SpinLock:
    """Lock flag guarded the way the kernel guards it; usable as a context manager."""

    def __init__(self):
        self.spin = False
        self.wait = deque()

    @property
    def locked(self):
        return self.spin

    def acquire(self):
        """Take the lock. Always succeeds and returns True."""
        self.spin = True
        return True

    def release(self):
        """Drop the lock if held. Always returns True."""
        if self.spin:
            self.spin = False
        return True

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False