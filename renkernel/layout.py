"""On-disk FAT32 structures: little-endian fields, directory entries and geometry."""

import struct
from dataclasses import dataclass, fields
from enum import IntFlag

SECTOR_SIZE = 512
CLUSTER_SIZE = 4096
DIR_ENTRY_SIZE = 32
FAT_ENTRY_MASK = 0x0FFFFFFF
DELETED_MARK = 0xE5


def _check_span(data, offset, width):
    if offset < 0 or offset + width > len(data):
        raise IndexError(f"{width} bytes at offset {offset} exceed buffer of {len(data)}")


def get_u16(data, offset):
    """Little-endian 16-bit value at ``offset``."""
    _check_span(data, offset, 2)
    return int.from_bytes(data[offset:offset + 2], "little")


def get_u32(data, offset):
    """Little-endian 32-bit value at ``offset``."""
    _check_span(data, offset, 4)
    return int.from_bytes(data[offset:offset + 4], "little")


def set_u16(data, offset, value):
    """Store the low 16 bits of ``value`` little-endian at ``offset``."""
    _check_span(data, offset, 2)
    data[offset:offset + 2] = (value & 0xFFFF).to_bytes(2, "little")


def set_u32(data, offset, value):
    """Store the low 32 bits of ``value`` little-endian at ``offset``."""
    _check_span(data, offset, 4)
    data[offset:offset + 4] = (value & 0xFFFFFFFF).to_bytes(4, "little")


def log2_floor(num):
    """Position of the highest set bit; 0 for 0 and 1."""
    if num < 0:
        raise ValueError("log2_floor needs a non-negative number")
    return max(num.bit_length() - 1, 0)


class Attr(IntFlag):
    NONE = 0
    READ_ONLY = 0x01
    HIDDEN = 0x02
    SYSTEM = 0x04
    VOLUME_ID = 0x08
    DIRECTORY = 0x10
    ARCHIVE = 0x20


_DIR_ENTRY = struct.Struct("<8s3sBBBHHHHHHHI")


@dataclass
class DirEntry:
    """A 32-byte short-name directory entry."""

    name: bytes = b" " * 8
    ext: bytes = b" " * 3
    attr: int = 0
    lcase: int = 0
    ctime_cs: int = 0
    ctime: int = 0
    cdate: int = 0
    adate: int = 0
    starthi: int = 0
    time: int = 0
    date: int = 0
    startlow: int = 0
    size: int = 0

    @classmethod
    def from_bytes(cls, data):
        if len(data) < DIR_ENTRY_SIZE:
            raise ValueError(f"a directory entry needs {DIR_ENTRY_SIZE} bytes")
        return cls(*_DIR_ENTRY.unpack_from(bytes(data[:DIR_ENTRY_SIZE])))

    def to_bytes(self):
        return _DIR_ENTRY.pack(
            bytes(self.name), bytes(self.ext), self.attr, self.lcase, self.ctime_cs,
            self.ctime, self.cdate, self.adate, self.starthi, self.time, self.date,
            self.startlow, self.size,
        )

    @property
    def raw_name(self):
        """The 11-byte name and extension as stored."""
        return bytes(self.name) + bytes(self.ext)

    @property
    def start_cluster(self):
        return (self.starthi << 16) + self.startlow

    @start_cluster.setter
    def start_cluster(self, cluster):
        self.starthi = (cluster >> 16) & 0xFFFF
        self.startlow = cluster & 0xFFFF

    @property
    def is_directory(self):
        return bool(self.attr & Attr.DIRECTORY)

    @property
    def is_volume_label(self):
        return bool(self.attr & Attr.VOLUME_ID)

    @property
    def is_end(self):
        """True for the entry that ends a directory listing."""
        return self.name[0] == 0

    @property
    def is_deleted(self):
        return self.name[0] == DELETED_MARK


_BOOT_SECTOR = struct.Struct("<3s8sHBHBHHBHHHIIIHHIHH12sBBBI11s8s420s2s")


@dataclass
class BootSector:
    """The FAT32 BIOS parameter block occupying a partition's first sector."""

    jump_code: bytes = b"\x00" * 3
    oem_name: bytes = b" " * 8
    sector_size: int = SECTOR_SIZE
    sectors_per_cluster: int = CLUSTER_SIZE // SECTOR_SIZE
    reserved_sectors: int = 32
    number_of_copies_of_fat: int = 2
    max_root_dir_entries: int = 0
    num_of_small_sectors: int = 0
    media_descriptor: int = 0xF8
    sectors_per_fat: int = 0
    sectors_per_track: int = 0
    num_of_heads: int = 0
    num_of_hidden_sectors: int = 0
    num_of_sectors: int = 0
    num_of_sectors_per_fat: int = 0
    flags: int = 0
    version: int = 0
    cluster_number_of_root_dir: int = 2
    sector_number_of_fs_info: int = 1
    sector_number_of_backup_boot: int = 6
    reserved_data: bytes = b"\x00" * 12
    logical_drive_number: int = 0
    unused: int = 0
    extended_signature: int = 0x29
    serial_number: int = 0
    volume_name: bytes = b" " * 11
    fat_name: bytes = b"FAT32   "
    exec_code: bytes = b"\x00" * 420
    boot_record_signature: bytes = b"\x55\xaa"

    @classmethod
    def parse(cls, data):
        if len(data) < SECTOR_SIZE:
            raise ValueError(f"a boot sector needs {SECTOR_SIZE} bytes")
        return cls(*_BOOT_SECTOR.unpack_from(bytes(data[:SECTOR_SIZE])))

    def to_bytes(self):
        return _BOOT_SECTOR.pack(*(getattr(self, f.name) for f in fields(self)))


@dataclass
class Geometry:
    """Where the FAT and the data clusters lie within a partition."""

    reserved_sectors: int
    sectors_per_cluster: int
    first_data_sector: int
    total_data_clusters: int = 0
    sectors_per_fat: int = 0

    @classmethod
    def from_boot_sector(cls, boot):
        """Geometry of a two-FAT volume described by ``boot``."""
        if boot.sectors_per_cluster == 0:
            raise ValueError("sectors per cluster must not be zero")
        fat_area = boot.num_of_sectors_per_fat * 2
        data_sectors = boot.num_of_sectors - boot.reserved_sectors - fat_area
        return cls(
            reserved_sectors=boot.reserved_sectors,
            sectors_per_cluster=boot.sectors_per_cluster,
            first_data_sector=boot.reserved_sectors + fat_area,
            total_data_clusters=max(data_sectors, 0) // boot.sectors_per_cluster,
            sectors_per_fat=boot.num_of_sectors_per_fat,
        )

    @property
    def cluster_bytes(self):
        return self.sectors_per_cluster << 9

    def cluster_to_fat_entry(self, cluster):
        """Sector of the FAT holding ``cluster``'s entry and the byte offset within it."""
        if cluster < 0:
            raise ValueError("cluster numbers are not negative")
        fat_offset = cluster << 2
        return self.reserved_sectors + (fat_offset >> 9), fat_offset & 511

    def cluster_to_sector(self, cluster):
        """First sector of data cluster ``cluster`` (clusters start at 2)."""
        if cluster < 2:
            raise ValueError(f"cluster {cluster} is not a data cluster")
        return ((cluster - 2) << log2_floor(self.sectors_per_cluster)) + self.first_data_sector

    def sector_to_cluster(self, sector):
        """Data cluster that contains ``sector``."""
        if sector < self.first_data_sector:
            raise ValueError(f"sector {sector} lies before the data area")
        return ((sector - self.first_data_sector) >> log2_floor(self.sectors_per_cluster)) + 2