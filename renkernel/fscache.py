"""Write-back buffer cache for disk blocks with clock (second-chance) replacement."""

from dataclasses import dataclass, field
from typing import Optional

from renkernel.sd import SECSIZE

REFERENCED = 0x01
DIRTY = 0x02


@dataclass
class CacheBuffer:
    """One cached run of sectors; ``cur`` is its first sector, None when empty."""

    data: bytearray
    cur: Optional[int] = None
    state: int = 0

    @property
    def referenced(self):
        return bool(self.state & REFERENCED)

    @property
    def dirty(self):
        return bool(self.state & DIRTY)

    @dirty.setter
    def dirty(self, value):
        if value:
            self.state |= DIRTY
        else:
            self.state &= ~DIRTY


@dataclass
class BufferPool:
    """A fixed set of buffers, each holding ``sectors`` consecutive sectors."""

    read_blocks: object
    write_blocks: object
    count: int
    sectors: int = 1
    clock_head: int = 0
    buffers: list = field(init=False)

    def __post_init__(self):
        if self.count < 1:
            raise ValueError("a buffer pool needs at least one buffer")
        if self.sectors < 1:
            raise ValueError("a buffer spans at least one sector")
        self.buffers = [CacheBuffer(bytearray(self.buffer_size)) for _ in range(self.count)]

    @property
    def buffer_size(self):
        return self.sectors * SECSIZE

    def __len__(self):
        return self.count

    def __getitem__(self, index):
        return self.buffers[index]

    def _advance(self):
        self.clock_head = (self.clock_head + 1) % self.count

    def victim(self):
        """Choose the buffer to replace and advance the clock past it."""
        for _ in range(self.count):
            buf = self.buffers[self.clock_head]
            if not buf.referenced:
                if not buf.dirty:
                    return self._take_head()
            else:
                buf.state &= ~REFERENCED
            self._advance()
        for _ in range(self.count):
            if not self.buffers[self.clock_head].dirty:
                return self._take_head()
            self._advance()
        return self._take_head()

    def _take_head(self):
        index = self.clock_head
        self._advance()
        return index

    def write_back(self, index):
        """Write buffer ``index`` to disk if it holds dirty data."""
        buf = self.buffers[index]
        if buf.cur is not None and buf.dirty:
            self.write_blocks(buf.cur, bytes(buf.data))
            buf.state &= REFERENCED

    def read(self, sector):
        """Return the index of the buffer holding ``sector``, loading it if needed."""
        for index, buf in enumerate(self.buffers):
            if buf.cur == sector:
                buf.state |= REFERENCED
                return index
        index = self.victim()
        self.write_back(index)
        buf = self.buffers[index]
        data = self.read_blocks(sector, self.sectors)
        buf.data[:] = data
        buf.cur = sector
        buf.state = REFERENCED
        return index

    def clear(self, sector):
        """Give ``sector`` a zero-filled buffer without reading it from disk."""
        index = self.victim()
        self.write_back(index)
        buf = self.buffers[index]
        buf.data[:] = bytes(self.buffer_size)
        buf.cur = sector
        buf.state = 0
        return index

    def flush(self):
        """Write every dirty buffer back to disk."""
        for index in range(self.count):
            self.write_back(index)