"""Sector-addressed SD card backed by an in-memory disk image."""

SECSIZE = 512


class SdError(OSError):
    """Raised when a sector cannot be transferred."""


class SdCard:
    """An SD card whose contents live in a bytearray of whole sectors.

    ``image`` is either a number of sectors (a blank card), a bytearray that
    the card uses directly, or any other bytes-like object that is copied.
    """

    def __init__(self, image):
        if isinstance(image, int):
            if image < 0:
                raise ValueError("sector count must not be negative")
            image = bytearray(image * SECSIZE)
        elif not isinstance(image, bytearray):
            image = bytearray(image)
        if len(image) % SECSIZE:
            raise ValueError(f"image size must be a multiple of {SECSIZE} bytes")
        self.image = image

    @property
    def sector_count(self):
        return len(self.image) // SECSIZE

    def _span(self, sector):
        if not 0 <= sector < self.sector_count:
            raise SdError(f"sector {sector} is out of range")
        start = sector * SECSIZE
        return slice(start, start + SECSIZE)

    def read_sector(self, sector):
        """Return the 512 bytes of one sector."""
        return bytes(self.image[self._span(sector)])

    def write_sector(self, sector, data):
        """Store exactly 512 bytes into one sector."""
        data = bytes(data)
        if len(data) != SECSIZE:
            raise ValueError(f"a sector holds {SECSIZE} bytes, got {len(data)}")
        self.image[self._span(sector)] = data

    def read_blocks(self, addr, count):
        """Read ``count`` consecutive sectors starting at ``addr``."""
        if count < 0:
            raise ValueError("block count must not be negative")
        return b"".join(self.read_sector(addr + i) for i in range(count))

    def write_blocks(self, addr, data):
        """Write whole sectors from ``data`` starting at ``addr``; stops at the first failure."""
        data = bytes(data)
        if len(data) % SECSIZE:
            raise ValueError(f"data size must be a multiple of {SECSIZE} bytes")
        for i, offset in enumerate(range(0, len(data), SECSIZE)):
            self.write_sector(addr + i, data[offset:offset + SECSIZE])