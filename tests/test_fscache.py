import pytest

from renkernel.fscache import DIRTY, REFERENCED, BufferPool
from renkernel.sd import SECSIZE, SdCard


def make_card(sectors=64):
    card = SdCard(sectors)
    for sector in range(sectors):
        card.write_sector(sector, bytes([sector]) * SECSIZE)
    return card


def make_pool(card, count=2, sectors=1):
    return BufferPool(card.read_blocks, card.write_blocks, count, sectors)


def cached(pool):
    return {buf.cur for buf in pool.buffers if buf.cur is not None}


def test_read_loads_sector_contents():
    card = make_card()
    pool = make_pool(card)
    index = pool.read(7)
    assert pool[index].data == bytes([7]) * SECSIZE
    assert pool[index].cur == 7
    assert pool[index].state == REFERENCED


def test_read_hit_returns_same_buffer():
    card = make_card()
    pool = make_pool(card)
    first = pool.read(3)
    pool[first].state = 0
    assert pool.read(3) == first
    assert pool[first].referenced


def test_clock_replaces_oldest_when_all_referenced():
    card = make_card()
    pool = make_pool(card)
    pool.read(10)
    pool.read(20)
    pool.read(30)
    assert cached(pool) == {20, 30}


def test_unreferenced_clean_buffer_is_preferred():
    card = make_card()
    pool = make_pool(card, count=3)
    a = pool.read(1)
    b = pool.read(2)
    c = pool.read(3)
    pool[b].state = 0
    pool.clock_head = a
    assert pool.victim() == b
    assert pool.clock_head == c


def test_all_dirty_uses_clock_head():
    card = make_card()
    pool = make_pool(card, count=2)
    for sector in (4, 5):
        pool[pool.read(sector)].dirty = True
    head = pool.clock_head
    assert pool.victim() == head


def test_flush_writes_dirty_buffers():
    card = make_card()
    pool = make_pool(card)
    index = pool.read(9)
    pool[index].data[:] = b"\xaa" * SECSIZE
    pool[index].dirty = True
    pool.flush()
    assert card.read_sector(9) == b"\xaa" * SECSIZE
    assert not pool[index].dirty
    assert pool[index].referenced


def test_clean_buffer_is_not_written():
    card = make_card()
    pool = make_pool(card)
    index = pool.read(9)
    pool[index].data[:] = b"\xbb" * SECSIZE
    pool.flush()
    assert card.read_sector(9) == bytes([9]) * SECSIZE


def test_eviction_writes_back_dirty_data():
    card = make_card()
    pool = make_pool(card, count=1)
    index = pool.read(12)
    pool[index].data[:] = b"\xcc" * SECSIZE
    pool[index].state = REFERENCED | DIRTY
    pool.read(13)
    assert card.read_sector(12) == b"\xcc" * SECSIZE
    assert cached(pool) == {13}


def test_clear_gives_zeroed_clean_buffer():
    card = make_card()
    pool = make_pool(card)
    index = pool.clear(11)
    assert pool[index].cur == 11
    assert pool[index].data == bytes(SECSIZE)
    assert pool[index].state == 0
    assert pool.read(11) == index
    assert pool[index].data == bytes(SECSIZE)


def test_multi_sector_buffers():
    card = make_card()
    pool = make_pool(card, count=2, sectors=4)
    index = pool.read(8)
    assert pool.buffer_size == 4 * SECSIZE
    assert pool[index].data == card.read_blocks(8, 4)
    pool[index].data[:] = b"\x01" * pool.buffer_size
    pool[index].dirty = True
    pool.write_back(index)
    assert card.read_blocks(8, 4) == b"\x01" * (4 * SECSIZE)


def test_pool_needs_buffers():
    card = make_card()
    with pytest.raises(ValueError):
        make_pool(card, count=0)