"""FAT32 file system over a sector device: path lookup, file I/O and file creation."""

from dataclasses import dataclass

from renkernel.fscache import DIRTY, REFERENCED, BufferPool
from renkernel.layout import (
    DELETED_MARK,
    DIR_ENTRY_SIZE,
    FAT_ENTRY_MASK,
    SECTOR_SIZE,
    Attr,
    BootSector,
    DirEntry,
    Geometry,
    get_u32,
    log2_floor,
    set_u32,
)

FAT_BUF_NUM = 2
DIR_DATA_BUF_NUM = 4
LOCAL_DATA_BUF_NUM = 4

ROOT_CLUSTER = 2
MIN_FAT32_CLUSTERS = 65525
MAX_PATH = 255
PARTITION_ENTRY = 446
FSINFO_SECTOR = 1
FSINFO_BACKUP_SECTOR = 7
FSI_FREE_COUNT = 488
FSI_NEXT_FREE = 492
END_OF_CHAIN = 0xFFFFFFFF
_WORD = 0xFFFFFFFF
_MODIFIED = REFERENCED | DIRTY


class FatError(OSError):
    """Raised when a FAT32 operation cannot be completed."""


def _as_bytes(text):
    if isinstance(text, str):
        return text.encode("latin-1")
    return bytes(text)


def short_name(component):
    """Convert one path component into the 11-byte upper-case name stored on disk."""
    raw = _as_bytes(component)
    slash = raw.find(b"/")
    if slash >= 0:
        raw = raw[:slash]
    chars = raw[:12].upper().ljust(13, b"\0")
    out = bytearray(b" " * 12)
    j = 0
    while j < 12 and chars[j] != 0 and chars[j] != ord("."):
        out[j] = chars[j]
        j += 1
    if chars[j] == ord("."):
        j += 1
        k = 8
        while j < 12 and chars[j] != 0 and k < 11:
            out[k] = chars[j]
            j += 1
            k += 1
    return bytes(out[:11])


def display_name(raw):
    """Turn an 11-byte on-disk name into its ``NAME.EXT`` form."""
    raw = bytes(raw)
    if len(raw) < 11:
        raise ValueError("a short name has 11 bytes")
    buf = bytearray(13)
    buf[:11] = raw[:11]
    if buf[0] == ord("."):
        return ".." if buf[1] == ord(".") else "."
    l1, l2 = 0, 8
    for i in range(8):
        if buf[i] == 0x20:
            buf[i] = ord(".")
            l1 = i
            break
    else:
        buf[9:12] = buf[8:11]
        buf[8] = ord(".")
        l1, l2 = 8, 9
    i = l1 + 1
    while i < l1 + 4:
        src = buf[l2 + i - l1 - 1]
        if src == 0x20:
            break
        buf[i] = src
        i += 1
    buf[i] = 0
    if buf[i - 1] == ord("."):
        buf[i - 1] = 0
    return bytes(buf).split(b"\0", 1)[0].decode("latin-1")


def _encode_path(path):
    raw = _as_bytes(path)
    if len(raw) > MAX_PATH:
        raise FatError(f"path longer than {MAX_PATH} bytes")
    if not raw.startswith(b"/"):
        raise FatError(f"only absolute paths are accepted: {raw!r}")
    return raw


@dataclass(eq=False)
class FatFile:
    """An open file: its directory entry, where that entry lives, and a data cache."""

    path: str
    entry: DirEntry
    dir_entry_sector: int
    dir_entry_pos: int
    buffers: BufferPool
    loc: int = 0

    @property
    def size(self):
        return self.entry.size

    def seek(self, loc):
        """Move the file pointer, clamped to the file size; return the new position."""
        if loc < 0:
            raise ValueError("file position must not be negative")
        self.loc = loc if loc < self.entry.size else self.entry.size
        return self.loc


class FatFileSystem:
    """The first partition of ``device`` mounted as a FAT32 volume."""

    def __init__(self, device):
        self.device = device
        mbr = device.read_blocks(0, 1)
        self.base_addr = get_u32(mbr, PARTITION_ENTRY + 8)
        self.boot = BootSector.parse(self._read_blocks(0, 1))
        boot = self.boot
        if boot.sector_size != SECTOR_SIZE:
            raise FatError(
                f"FAT32 Sector size must be {SECTOR_SIZE} bytes, "
                f"but get {boot.sector_size} bytes."
            )
        if boot.max_root_dir_entries or boot.num_of_small_sectors or boot.sectors_per_fat:
            raise FatError("not a FAT32 volume")
        try:
            self.geometry = Geometry.from_boot_sector(boot)
        except ValueError as exc:
            raise FatError(str(exc)) from exc
        if self.geometry.total_data_clusters < MIN_FAT32_CLUSTERS:
            raise FatError("too few clusters for a FAT32 volume")
        self.fs_info = bytearray(self._read_blocks(FSINFO_SECTOR, 1))
        self.fat_pool = BufferPool(self._read_blocks, self._write_fat_sector, FAT_BUF_NUM, 1)
        self.dir_pool = BufferPool(self._read_blocks, self._write_blocks, DIR_DATA_BUF_NUM, 1)

    # -- raw partition access -------------------------------------------------

    def _read_blocks(self, addr, count):
        return self.device.read_blocks(self.base_addr + addr, count)

    def _write_blocks(self, addr, data):
        self.device.write_blocks(self.base_addr + addr, data)

    def _write_fat_sector(self, sector, data):
        self._write_blocks(sector, data)
        self._write_blocks(self.geometry.sectors_per_fat + sector, data)

    def _new_buffers(self):
        return BufferPool(
            self._read_blocks, self._write_blocks, LOCAL_DATA_BUF_NUM,
            self.geometry.sectors_per_cluster,
        )

    @property
    def last_cluster(self):
        """Highest valid data cluster number."""
        return self.geometry.total_data_clusters + 1

    def cluster_sector(self, cluster):
        """First partition sector of data cluster ``cluster``."""
        try:
            return self.geometry.cluster_to_sector(cluster)
        except ValueError as exc:
            raise FatError(str(exc)) from exc

    # -- the allocation table -------------------------------------------------

    def _fat_slot(self, cluster):
        sector, offset = self.geometry.cluster_to_fat_entry(cluster)
        return self.fat_pool[self.fat_pool.read(sector)], offset

    def fat_entry(self, cluster):
        """The 28-bit FAT value of ``cluster``."""
        buf, offset = self._fat_slot(cluster)
        return get_u32(buf.data, offset) & FAT_ENTRY_MASK

    def set_fat_entry(self, cluster, value):
        """Set the FAT value of ``cluster``, keeping the entry's reserved top bits."""
        buf, offset = self._fat_slot(cluster)
        buf.state = _MODIFIED
        old = get_u32(buf.data, offset)
        set_u32(buf.data, offset, (old & 0xF0000000) | (value & FAT_ENTRY_MASK))

    def _next_free(self, start):
        for cluster in range(start, self.last_cluster + 1):
            if self.fat_entry(cluster) == 0:
                return cluster
        return None

    def alloc_cluster(self):
        """Allocate and erase a free data cluster; return its number."""
        cluster = (get_u32(self.fs_info, FSI_NEXT_FREE) + 1) & _WORD
        if cluster > get_u32(self.fs_info, FSI_FREE_COUNT) + 1:
            cluster = self._next_free(ROOT_CLUSTER)
            if cluster is None:
                raise FatError("no free cluster")
        self.set_fat_entry(cluster, END_OF_CHAIN)
        following = self._next_free(cluster)
        if following is None or following > self.last_cluster:
            raise FatError("no free cluster left after allocation")
        set_u32(self.fs_info, FSI_NEXT_FREE, following - 1)
        self._write_blocks(self.cluster_sector(cluster), bytes(self.geometry.cluster_bytes))
        return cluster

    def flush(self):
        """Write FSInfo, the FAT buffers and the directory buffers to the device."""
        self._write_blocks(FSINFO_SECTOR, self.fs_info)
        self._write_blocks(FSINFO_BACKUP_SECTOR, self.fs_info)
        self.fat_pool.flush()
        self.dir_pool.flush()

    # -- directories ----------------------------------------------------------

    def walk_dir(self, sector, extend=False):
        """Yield ``(sector, offset, raw_entry)`` for each slot of a directory's chain.

        With ``extend`` the chain grows by a fresh cluster when it runs out.
        """
        spc = self.geometry.sectors_per_cluster
        while True:
            for step in range(spc):
                data = bytes(self.dir_pool[self.dir_pool.read(sector)].data)
                for offset in range(0, SECTOR_SIZE, DIR_ENTRY_SIZE):
                    yield sector, offset, data[offset:offset + DIR_ENTRY_SIZE]
                if step < spc - 1:
                    sector += 1
            cluster = self.geometry.sector_to_cluster(sector - spc + 1)
            following = self.fat_entry(cluster)
            if following > self.last_cluster:
                if not extend:
                    return
                following = self.alloc_cluster()
                self.set_fat_entry(cluster, following)
                self.dir_pool.clear(self.cluster_sector(following))
            sector = self.cluster_sector(following)

    def _search_dir(self, sector, name):
        for slot_sector, offset, raw in self.walk_dir(sector):
            if raw[0] == 0:
                return None
            if raw[:11] == name and not raw[11] & Attr.VOLUME_ID:
                return slot_sector, offset, DirEntry.from_bytes(raw)
        return None

    def _find_empty_slot(self, sector):
        for slot_sector, offset, raw in self.walk_dir(sector, extend=True):
            if raw[0] in (0, DELETED_MARK):
                return slot_sector, offset
        raise FatError("directory has no room")

    def find(self, path):
        """Look up an absolute path; return a FatFile, or None if it does not exist."""
        raw = _encode_path(path)
        rest = raw[1:]
        sector = self.cluster_sector(ROOT_CLUSTER)
        while True:
            slash = rest.find(b"/")
            if slash < 0:
                slash = len(rest)
            hit = self._search_dir(sector, short_name(rest[:slash]))
            if hit is None:
                return None
            entry_sector, offset, entry = hit
            if slash == len(rest):
                return FatFile(
                    raw.decode("latin-1"), entry, entry_sector, offset, self._new_buffers()
                )
            if not entry.is_directory:
                raise FatError(f"{rest[:slash]!r} is not a directory")
            rest = rest[slash + 1:]
            cluster = entry.start_cluster
            if cluster > self.last_cluster:
                raise FatError("directory points outside the data area")
            sector = self.cluster_sector(cluster)

    def open(self, path):
        """Open an existing file or directory."""
        file = self.find(path)
        if file is None:
            raise FatError(f"no such file: {path!r}")
        return file

    # -- file data ------------------------------------------------------------

    def _span(self, loc, count):
        cluster_bytes = self.geometry.cluster_bytes
        shift = log2_floor(cluster_bytes)
        last = loc + count - 1
        return (loc >> shift, loc & (cluster_bytes - 1),
                last >> shift, last & (cluster_bytes - 1))

    def read(self, file, count):
        """Read up to ``count`` bytes from the file position."""
        if count < 0:
            raise ValueError("count must not be negative")
        cluster = file.entry.start_cluster
        if cluster == 0:
            return b""
        count = min(count, file.entry.size - file.loc)
        if count <= 0:
            return b""
        start_clus, start_byte, end_clus, end_byte = self._span(file.loc, count)
        for _ in range(start_clus):
            cluster = self.fat_entry(cluster)
        out = bytearray()
        while True:
            data = file.buffers[file.buffers.read(self.cluster_sector(cluster))].data
            if start_clus == end_clus:
                out += data[start_byte:end_byte + 1]
                break
            out += data[start_byte:self.geometry.cluster_bytes]
            start_clus += 1
            start_byte = 0
            cluster = self.fat_entry(cluster)
        file.loc += count
        return bytes(out)

    def _following_cluster(self, file, cluster):
        following = self.fat_entry(cluster)
        if following > self.last_cluster:
            following = self.alloc_cluster()
            self.set_fat_entry(cluster, following)
            file.buffers.clear(self.cluster_sector(following))
        return following

    def write(self, file, data):
        """Write ``data`` at the file position, growing the file; return bytes written."""
        data = bytes(data)
        count = len(data)
        if not count:
            return 0
        start_clus, start_byte, end_clus, end_byte = self._span(file.loc, count)
        cluster = file.entry.start_cluster
        if cluster == 0:
            cluster = self.alloc_cluster()
            file.entry.start_cluster = cluster
            file.buffers.clear(self.cluster_sector(cluster))
        for _ in range(start_clus):
            cluster = self._following_cluster(file, cluster)
        written = 0
        while True:
            buf = file.buffers[file.buffers.read(self.cluster_sector(cluster))]
            buf.state = _MODIFIED
            last = start_clus == end_clus
            stop = end_byte + 1 if last else self.geometry.cluster_bytes
            chunk = stop - start_byte
            buf.data[start_byte:stop] = data[written:written + chunk]
            written += chunk
            if last:
                break
            start_clus += 1
            start_byte = 0
            cluster = self._following_cluster(file, cluster)
        if file.loc + count > file.entry.size:
            file.entry.size = file.loc + count
        file.loc += count
        return written

    def close(self, file):
        """Store the file's directory entry and write all buffered data to the device."""
        buf = self.dir_pool[self.dir_pool.read(file.dir_entry_sector)]
        buf.state = _MODIFIED
        pos = file.dir_entry_pos
        buf.data[pos:pos + DIR_ENTRY_SIZE] = file.entry.to_bytes()
        self.flush()
        file.buffers.flush()

    def create(self, path, attr=Attr.ARCHIVE):
        """Add an empty directory entry for ``path`` with the given attribute byte."""
        raw = _encode_path(path)
        try:
            existing = self.find(raw)
        except FatError:
            existing = None
        if existing is not None:
            raise FatError(f"The file has exists: {path!r}")
        slash = raw.rfind(b"/")
        if slash:
            parent = self.find(raw[:slash])
            if parent is None:
                raise FatError(f"no such directory: {raw[:slash]!r}")
            sector = self.cluster_sector(parent.entry.start_cluster)
        else:
            sector = self.cluster_sector(ROOT_CLUSTER)
        slot_sector, offset = self._find_empty_slot(sector)
        buf = self.dir_pool[self.dir_pool.read(slot_sector)]
        buf.state = _MODIFIED
        record = short_name(raw[slash + 1:]) + bytes([int(attr) & 0xFF]) + bytes(20)
        buf.data[offset:offset + DIR_ENTRY_SIZE] = record
        self.flush()