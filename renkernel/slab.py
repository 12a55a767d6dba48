"""Slab allocator for small kernel objects, backed by the buddy system."""

from dataclasses import dataclass, field
from typing import Optional

from renkernel.buddy import Page, PageFlag
from renkernel.machine import KERNEL_ENTRY, PAGE_SHIFT, PAGE_SIZE

SIZE_INT = 4
POINTER_SIZE = 4
SLAB_HEAD_SIZE = 12
CACHE_SIZES = (96, 192, 8, 16, 32, 64, 128, 256, 512, 1024, 1536, 2048)


class OutOfMemoryError(MemoryError):
    """Raised when no memory can be found for a request."""


@dataclass
class _SlabHead:
    base: int
    end_ptr: int
    nr_objs: int = 0
    was_full: bool = False
    free: list = field(default_factory=list)


@dataclass(eq=False)
class KmemCache:
    """A cache of equally sized objects."""

    objsize: int
    size: int = field(init=False)
    offset: int = field(init=False)
    cpu_page: Optional[Page] = None
    partial: list = field(default_factory=list)
    full: list = field(default_factory=list)

    def __post_init__(self):
        self.objsize = (self.objsize + SIZE_INT - 1) & ~(SIZE_INT - 1)
        self.size = self.objsize + POINTER_SIZE
        self.offset = self.size


def _page_address(pfn):
    return (pfn << PAGE_SHIFT) | KERNEL_ENTRY


class SlabAllocator:
    """kmalloc/kfree over a set of size-class caches."""

    def __init__(self, buddy):
        self.buddy = buddy
        self.caches = [KmemCache(size) for size in CACHE_SIZES]
        self._heads = {}

    def _format_page(self, cache, page):
        page.flag |= PageFlag.SLAB
        base = _page_address(page.index)
        self._heads[page.index] = _SlabHead(base, base + SLAB_HEAD_SIZE)
        cache.cpu_page = page
        page.virtual = cache
        page.slabp = 0

    def _slab_alloc(self, cache):
        page = cache.cpu_page
        head = self._heads[page.index] if page is not None else None
        while True:
            if head is not None:
                if head.free:
                    obj = head.free.pop()
                    page.slabp = head.free[-1] if head.free else 0
                    head.nr_objs += 1
                    return obj
                if not head.was_full:
                    obj = head.end_ptr
                    head.end_ptr += cache.size
                    head.nr_objs += 1
                    if head.end_ptr + cache.size - head.base >= PAGE_SIZE:
                        head.was_full = True
                        cache.full.append(page.index)
                    return obj
            if cache.partial:
                pfn = cache.partial.pop(0)
                page = self.buddy.pages[pfn]
                cache.cpu_page = page
                head = self._heads[pfn]
            else:
                try:
                    page = self.buddy.alloc_block(0)
                except MemoryError as exc:
                    raise OutOfMemoryError("slab request one page in cache failed") from exc
                self._format_page(cache, page)
                head = self._heads[page.index]

    def _slab_free(self, cache, obj):
        pfn = obj >> PAGE_SHIFT
        head = self._heads.get(pfn)
        if head is None:
            raise ValueError(f"{obj:#x} is not a slab object")
        if not head.nr_objs:
            return
        page = self.buddy.pages[pfn]
        obj |= KERNEL_ENTRY
        was_full = not head.free and head.was_full
        head.free.append(obj)
        page.slabp = obj
        head.nr_objs -= 1

        if pfn in cache.full:
            owner = cache.full
        elif pfn in cache.partial:
            owner = cache.partial
        else:
            return  # the cache's current page

        if not head.nr_objs:
            owner.remove(pfn)
            if cache.cpu_page is page:
                cache.cpu_page = None
            del self._heads[pfn]
            page.virtual = None
            page.slabp = 0
            self.buddy.free_block(pfn, 0)
            return

        if was_full:
            owner.remove(pfn)
            cache.partial.append(pfn)

    def get_slab(self, size):
        """Index of the best-fitting cache, or PAGE_SHIFT if none fits."""
        best_size = 1 << (PAGE_SHIFT - 1)
        best_index = PAGE_SHIFT
        for index, cache in enumerate(self.caches):
            if size <= cache.objsize < best_size:
                best_size = cache.objsize
                best_index = index
        return best_index

    def phy_kmalloc(self, size):
        """Allocate ``size`` bytes; large requests go straight to the buddy system."""
        if size <= 0:
            raise ValueError("allocation size must be positive")
        if size > self.caches[-1].objsize:
            pages = (size + PAGE_SIZE - 1) >> PAGE_SHIFT
            try:
                return self.buddy.alloc_pages(pages)
            except MemoryError as exc:
                raise OutOfMemoryError(f"cannot allocate {size} bytes") from exc
        index = self.get_slab(size)
        if index >= len(self.caches):
            raise OutOfMemoryError("No available slab")
        return self._slab_alloc(self.caches[index])

    def kmalloc(self, size):
        """Allocate ``size`` bytes and return a kernel virtual address."""
        return KERNEL_ENTRY | self.phy_kmalloc(size)

    def kfree(self, obj):
        """Release memory returned by kmalloc or phy_kmalloc."""
        phys = obj & ~KERNEL_ENTRY & 0xFFFFFFFF
        pfn = phys >> PAGE_SHIFT
        if not 0 <= pfn < len(self.buddy.pages):
            raise ValueError(f"{obj:#x} is outside physical memory")
        page = self.buddy.pages[pfn]
        if PageFlag.SLAB in page.flag:
            self._slab_free(page.virtual, phys)
            return
        if page.bplevel is None or PageFlag.ALLOCED not in page.flag:
            raise ValueError(f"{obj:#x} was not allocated")
        self.buddy.free_pages(phys & ~(PAGE_SIZE - 1), page.bplevel)