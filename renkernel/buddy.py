"""Buddy page allocator built on top of the boot-time memory manager."""

from dataclasses import dataclass
from enum import IntFlag
from typing import Optional

from renkernel.bootmm import MemoryUsage
from renkernel.lock import SpinLock
from renkernel.machine import KERNEL_ENTRY, PAGE_SHIFT, PAGE_SIZE

MAX_BUDDY_ORDER = 4
# flag, reference, two list pointers, virtual, bplevel, slabp: seven words
PAGE_STRUCT_SIZE = 28


class PageFlag(IntFlag):
    NONE = 0
    SLAB = 1 << 29
    ALLOCED = 1 << 30
    RESERVED = 1 << 31


@dataclass(eq=False)
class Page:
    """Bookkeeping for one physical page frame."""

    index: int
    flag: PageFlag = PageFlag.RESERVED
    reference: int = 1
    virtual: object = None
    bplevel: Optional[int] = None
    slabp: int = 0


class BuddySystem:
    """Splits and merges power-of-two groups of pages, up to 2**MAX_BUDDY_ORDER."""

    def __init__(self, bootmm):
        table = bootmm.alloc_pages(
            PAGE_STRUCT_SIZE * bootmm.max_pfn, MemoryUsage.KERNEL, PAGE_SIZE
        )
        self.table_address = table | KERNEL_ENTRY
        self.pages = [Page(pfn) for pfn in range(bootmm.max_pfn)]

        kernel_end_pfn = max((r.end for r in bootmm.regions), default=0) >> PAGE_SHIFT
        block = 1 << MAX_BUDDY_ORDER
        self.start_pfn = (kernel_end_pfn + block - 1) & ~(block - 1)
        self.end_pfn = bootmm.max_pfn & ~(block - 1)

        self.lock = SpinLock()
        # Each free list is an ordered set; the most recently added entry is the head.
        self._free = [{} for _ in range(MAX_BUDDY_ORDER + 1)]
        for pfn in range(self.start_pfn, self.end_pfn):
            self.free_block(pfn, 0)

    def _is_free_head(self, pfn, level):
        return pfn in self._free[level]

    def free_block(self, page_index, level):
        """Return the block of 2**level pages starting at ``page_index``."""
        if not self.start_pfn <= page_index < self.end_pfn:
            raise ValueError(f"page {page_index:#x} is outside the buddy system")
        if not 0 <= level <= MAX_BUDDY_ORDER:
            raise ValueError(f"invalid buddy level {level}")
        idx = page_index - self.start_pfn
        if idx & ((1 << level) - 1):
            raise ValueError(f"page {page_index:#x} is not aligned for level {level}")
        page = self.pages[page_index]
        if page.bplevel is not None and self._is_free_head(page_index, page.bplevel):
            raise ValueError(f"page {page_index:#x} is already free")

        with self.lock:
            page.flag &= ~(PageFlag.ALLOCED | PageFlag.SLAB)
            while level < MAX_BUDDY_ORDER:
                group = idx ^ (1 << level)
                group_pfn = self.start_pfn + group
                if group_pfn >= self.end_pfn:
                    break
                group_page = self.pages[group_pfn]
                if group_page.bplevel != level or not self._is_free_head(group_pfn, level):
                    break
                del self._free[level][group_pfn]
                group_page.bplevel = None
                self.pages[self.start_pfn + idx].bplevel = None
                idx &= group
                level += 1
            head = self.pages[self.start_pfn + idx]
            head.bplevel = level
            self._free[level][head.index] = None

    def alloc_block(self, level):
        """Take a block of 2**level pages, splitting larger blocks as needed."""
        if level < 0:
            raise ValueError(f"invalid buddy level {level}")
        with self.lock:
            for order in range(level, MAX_BUDDY_ORDER + 1):
                if self._free[order]:
                    break
            else:
                raise MemoryError(f"no free block of level {level}")
            freelist = self._free[order]
            pfn = next(reversed(freelist))
            del freelist[pfn]
            page = self.pages[pfn]
            page.bplevel = level
            page.flag |= PageFlag.ALLOCED

            size = 1 << order
            while order > level:
                order -= 1
                size >>= 1
                buddy_page = self.pages[pfn + size]
                self._free[order][buddy_page.index] = None
                buddy_page.bplevel = order
            return page

    def alloc_pages(self, count):
        """Allocate at least ``count`` pages; return their physical address."""
        if count <= 0:
            raise ValueError("page count must be positive")
        level = 1
        while (1 << level) < count:
            level += 1
        return self.alloc_block(level).index << PAGE_SHIFT

    def free_pages(self, addr, level):
        """Free the block at physical address ``addr`` of the given level."""
        self.free_block(addr >> PAGE_SHIFT, level)

    def free_counts(self):
        """Number of free blocks at each level, from 0 to MAX_BUDDY_ORDER."""
        return [len(freelist) for freelist in self._free]

    def free_page_total(self):
        """Total number of free pages across all levels."""
        return sum(count << level for level, count in enumerate(self.free_counts()))

    def describe(self):
        """Return a printable summary of the buddy system."""
        lines = [
            "buddy-system:",
            f"\tstart frame number: {self.start_pfn:x}",
            f"\tend frame number: {self.end_pfn:x}",
        ]
        lines.extend(
            f"\tlevel {level:x}: {count:x} frees"
            for level, count in enumerate(self.free_counts())
        )
        return "\n".join(lines) + "\n"