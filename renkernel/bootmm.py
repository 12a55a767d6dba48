"""Boot-time physical memory manager: a page bitmap plus a list of regions."""

import contextlib
import dataclasses
from dataclasses import dataclass
from enum import IntEnum

from renkernel.machine import PAGE_MASK, PAGE_SHIFT, PAGE_SIZE, get_phymm_size

PAGE_FREE = 0x00
PAGE_USED = 0xFF
MAX_INFO = 10
KERNEL_RESERVED = 16 * 1024 * 1024


class MemoryUsage(IntEnum):
    KERNEL = 0
    MMMAP = 1
    VGABUFF = 2
    PDTABLE = 3
    PTABLE = 4
    DYNAMIC = 5
    RESERVED = 6

    @property
    def message(self):
        return _MESSAGES[self]


_MESSAGES = {
    MemoryUsage.KERNEL: "Kernel code/data",
    MemoryUsage.MMMAP: "Mm Bitmap",
    MemoryUsage.VGABUFF: "Vga Buffer",
    MemoryUsage.PDTABLE: "Kernel page directory",
    MemoryUsage.PTABLE: "Kernel page table",
    MemoryUsage.DYNAMIC: "Dynamic",
    MemoryUsage.RESERVED: "Reserved",
}


class InsertResult(IntEnum):
    """How a new region was recorded."""

    NEW = 1
    FORWARD = 2
    BACKWARD = 4
    BRIDGE = 7


@dataclass
class MemoryRegion:
    start: int
    end: int
    usage: MemoryUsage


class BootMemory:
    """Tracks physical pages during boot."""

    def __init__(self, phymm=None, kernel_end=KERNEL_RESERVED):
        self.phymm = get_phymm_size() if phymm is None else phymm
        self.max_pfn = self.phymm >> PAGE_SHIFT
        self.map = bytearray(self.max_pfn)
        self.regions = []
        self.insert_info(0, kernel_end - 1, MemoryUsage.KERNEL)
        self.last_alloc_end = (kernel_end >> PAGE_SHIFT) - 1
        self.set_maps(0, kernel_end >> PAGE_SHIFT, PAGE_USED)

    def insert_info(self, start, end, usage):
        """Record [start, end] as used for ``usage``, merging with neighbours."""
        regions = self.regions
        position = len(regions)
        for i, region in enumerate(regions):
            if region.start > start:
                position = i
                break
            if region.usage != usage:
                continue
            if region.end == start - 1:
                if i + 1 < len(regions):
                    after = regions[i + 1]
                    if after.usage == usage and after.start == end + 1:
                        region.end = after.end
                        self.remove_info(i + 1)
                        return InsertResult.BRIDGE
                region.end = end
                return InsertResult.FORWARD
        if position < len(regions):
            following = regions[position]
            if following.usage == usage and following.start == end + 1:
                following.start = start
                return InsertResult.BACKWARD
        if len(regions) >= MAX_INFO:
            raise MemoryError("boot memory region table is full")
        regions.append(MemoryRegion(start, end, MemoryUsage(usage)))
        return InsertResult.NEW

    def split_info(self, index, split_start):
        """Split region ``index`` so that a new region begins at ``split_start``."""
        if not 0 <= index < len(self.regions):
            raise IndexError(f"no region at index {index}")
        region = self.regions[index]
        split_start &= PAGE_MASK
        if split_start <= region.start or split_start >= region.end:
            raise ValueError(f"split point {split_start:#x} is not inside region {index}")
        if len(self.regions) >= MAX_INFO:
            raise MemoryError("boot memory region table is full")
        tail = dataclasses.replace(region, start=split_start)
        region.end = split_start - 1
        self.regions.insert(index + 1, tail)

    def remove_info(self, index):
        """Drop region ``index``; out-of-range indexes are ignored."""
        if 0 <= index < len(self.regions):
            del self.regions[index]

    def set_maps(self, s_pfn, count, value):
        """Set ``count`` bitmap entries starting at page ``s_pfn`` to ``value``."""
        self.map[s_pfn:s_pfn + count] = bytes([value]) * count

    def find_pages(self, page_count, s_pfn, e_pfn, align_pfn):
        """Mark and return the address of ``page_count`` free pages, or None."""
        if align_pfn < 1:
            raise ValueError("alignment must be at least one page")
        s_pfn = (s_pfn + align_pfn - 1) & ~(align_pfn - 1)
        bitmap = self.map
        index = s_pfn
        while index < e_pfn:
            if bitmap[index] == PAGE_USED:
                index += 1
                continue
            remaining = page_count
            probe = index
            while remaining:
                if probe >= e_pfn:
                    return None
                if bitmap[probe] == PAGE_FREE:
                    probe += 1
                    remaining -= 1
                if probe < len(bitmap) and bitmap[probe] == PAGE_USED:
                    break
            if remaining == 0:
                self.last_alloc_end = probe - 1
                self.set_maps(index, page_count, PAGE_USED)
                return index << PAGE_SHIFT
            index = probe + align_pfn
        return None

    def alloc_pages(self, size, usage, align):
        """Allocate ``size`` bytes rounded up to pages; return the physical address."""
        if size <= 0:
            raise ValueError("allocation size must be positive")
        size = (size + PAGE_SIZE - 1) & PAGE_MASK
        pages = size >> PAGE_SHIFT
        align_pfn = align >> PAGE_SHIFT
        for start, stop in ((self.last_alloc_end + 1, self.max_pfn), (0, self.last_alloc_end)):
            found = self.find_pages(pages, start, stop, align_pfn)
            if found is not None:
                with contextlib.suppress(MemoryError):
                    self.insert_info(found, found + size - 1, usage)
                return found
        raise MemoryError(f"cannot allocate {size:#x} bytes")

    def free_pages(self, start, size):
        """Return whole pages in [start, start + size) to the free pool."""
        size &= PAGE_MASK
        pages = size >> PAGE_SHIFT
        if not pages:
            return
        start &= PAGE_MASK
        last = start + size - 1
        for index, region in enumerate(self.regions):
            if region.start <= start and region.end >= last:
                break
        else:
            raise ValueError(f"no allocated space {start:x}-{last:x}")
        rem = dataclasses.replace(region)
        if rem.start == start:
            if rem.end == last:
                self.remove_info(index)
            else:
                self.regions[index] = MemoryRegion(start + size, rem.end, rem.usage)
        elif rem.end == last:
            self.regions[index] = MemoryRegion(rem.start, start - 1, rem.usage)
        else:
            self.split_info(index, start)
            self.regions[index + 1] = MemoryRegion(start + size, rem.end, rem.usage)
        self.set_maps(start >> PAGE_SHIFT, pages, PAGE_FREE)

    def describe(self):
        """Return a printable summary of all regions."""
        lines = ["Bootmm system:"]
        lines.extend(
            f"\t{r.start:x}-{r.end:x} : {MemoryUsage(r.usage).message}" for r in self.regions
        )
        return "\n".join(lines) + "\n"