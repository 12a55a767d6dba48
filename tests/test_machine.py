import pytest

from renkernel import machine


def test_physical_memory_size():
    assert machine.get_phymm_size() == 128 * 1024 * 1024


def test_page_size_matches_shift():
    page_size = 1 << machine.PAGE_SHIFT
    assert machine.PAGE_SIZE == page_size
    assert machine.page_align_up(1) == page_size
    assert machine.page_align_down(page_size - 1) == 0
    assert machine.page_align_down(page_size + 1) == page_size


@pytest.mark.parametrize("addr", [0, 1, 0x1234, 0x80001000, 0xFFFFF, 0x7FFFFFFF])
def test_align_down_invariants(addr):
    down = machine.page_align_down(addr)
    assert down % machine.PAGE_SIZE == 0
    assert down <= addr
    assert addr - down < machine.PAGE_SIZE


@pytest.mark.parametrize("addr", [0, 1, 0x1234, 0x80001000, 0xFFFFF])
def test_align_up_invariants(addr):
    up = machine.page_align_up(addr)
    assert up % machine.PAGE_SIZE == 0
    assert up >= addr
    assert up - addr < machine.PAGE_SIZE


def test_aligned_address_is_unchanged():
    addr = machine.KERNEL_CODE_ENTRY
    assert machine.page_align_down(addr) == addr
    assert machine.page_align_up(addr) == addr


def test_negative_address_rejected():
    with pytest.raises(ValueError):
        machine.page_align_down(-1)
    with pytest.raises(ValueError):
        machine.page_align_up(-4096)