import pytest

from renkernel.bootmm import BootMemory
from renkernel.buddy import MAX_BUDDY_ORDER, BuddySystem, PageFlag
from renkernel.machine import PAGE_SHIFT, PAGE_SIZE


@pytest.fixture
def bootmm():
    return BootMemory(phymm=1024 * 1024, kernel_end=64 * 1024)


@pytest.fixture
def buddy(bootmm):
    return BuddySystem(bootmm)


def test_range_is_aligned_and_after_kernel(bootmm, buddy):
    block = 1 << MAX_BUDDY_ORDER
    assert buddy.start_pfn % block == 0
    assert buddy.end_pfn % block == 0
    assert buddy.end_pfn == bootmm.max_pfn & ~(block - 1)
    kernel_end = max(r.end for r in bootmm.regions) >> PAGE_SHIFT
    assert buddy.start_pfn >= kernel_end


def test_all_pages_start_free_in_largest_blocks(buddy):
    counts = buddy.free_counts()
    assert counts[:MAX_BUDDY_ORDER] == [0] * MAX_BUDDY_ORDER
    assert buddy.free_page_total() == buddy.end_pfn - buddy.start_pfn


def test_alloc_block_splits(buddy):
    before = buddy.free_counts()
    page = buddy.alloc_block(0)
    after = buddy.free_counts()
    assert after[:MAX_BUDDY_ORDER] == [1] * MAX_BUDDY_ORDER
    assert after[MAX_BUDDY_ORDER] == before[MAX_BUDDY_ORDER] - 1
    assert page.bplevel == 0
    assert PageFlag.ALLOCED in page.flag


def test_free_block_merges_back(buddy):
    before = buddy.free_counts()
    page = buddy.alloc_block(0)
    buddy.free_block(page.index, 0)
    assert buddy.free_counts() == before


def test_alloc_pages_rounds_to_at_least_two_pages(buddy):
    total = buddy.free_page_total()
    addr = buddy.alloc_pages(1)
    assert addr % PAGE_SIZE == 0
    pfn = addr >> PAGE_SHIFT
    assert buddy.start_pfn <= pfn < buddy.end_pfn
    assert buddy.pages[pfn].bplevel == 1
    assert buddy.free_page_total() == total - 2


def test_alloc_and_free_pages_round_trip(buddy):
    before = buddy.free_counts()
    addrs = [buddy.alloc_pages(n) for n in (1, 3, 5, 16)]
    assert len(set(addrs)) == len(addrs)
    for addr, n in zip(addrs, (1, 3, 5, 16)):
        buddy.free_pages(addr, buddy.pages[addr >> PAGE_SHIFT].bplevel)
    assert buddy.free_counts() == before


def test_allocations_do_not_overlap(buddy):
    blocks = []
    for _ in range(10):
        page = buddy.alloc_block(1)
        blocks.append(range(page.index, page.index + 2))
    pfns = [pfn for block in blocks for pfn in block]
    assert len(pfns) == len(set(pfns))


def test_level_too_large_raises(buddy):
    with pytest.raises(MemoryError):
        buddy.alloc_block(MAX_BUDDY_ORDER + 1)
    with pytest.raises(MemoryError):
        buddy.alloc_pages(32)


def test_zero_pages_rejected(buddy):
    with pytest.raises(ValueError):
        buddy.alloc_pages(0)


def test_exhaustion_raises(buddy):
    for _ in range(buddy.free_counts()[MAX_BUDDY_ORDER]):
        buddy.alloc_block(MAX_BUDDY_ORDER)
    assert buddy.free_page_total() == 0
    with pytest.raises(MemoryError):
        buddy.alloc_block(0)


def test_double_free_rejected(buddy):
    page = buddy.alloc_block(0)
    buddy.free_block(page.index, 0)
    with pytest.raises(ValueError):
        buddy.free_block(buddy.start_pfn, MAX_BUDDY_ORDER)


def test_free_outside_range_rejected(buddy):
    with pytest.raises(ValueError):
        buddy.free_block(0, 0)


def test_describe_lists_levels(buddy):
    text = buddy.describe()
    assert text.startswith("buddy-system:\n")
    assert f"\tstart frame number: {buddy.start_pfn:x}\n" in text
    for level in range(MAX_BUDDY_ORDER + 1):
        assert f"\tlevel {level:x}:" in text