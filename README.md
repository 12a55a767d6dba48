# renkernel

`renkernel` models the core parts of a small teaching operating-system kernel
in plain Python. Each subsystem is an ordinary object that can be built,
driven and inspected on its own: memory managers, a PID bitmap, a text
console, a keyboard decoder, interrupt lines, an SD card backed by a byte
image, and a FAT32 file system on top of it. Nothing touches real hardware.

## What is inside

| Module | Contents |
| --- | --- |
| `renkernel.machine` | Machine parameters and paging constants, `get_phymm_size()`, `page_align_down()`, `page_align_up()` |
| `renkernel.pid` | `PidMap`, a 256-entry PID allocator (pid 0 is reserved for the idle task), and `PidError` |
| `renkernel.lock` | `SpinLock`, with `acquire()`/`release()` and use as a context manager |
| `renkernel.bootmm` | `BootMemory`: a page bitmap and a table of at most 10 `MemoryRegion`s tagged with a `MemoryUsage`; `insert_info()` reports how a region was merged as an `InsertResult` |
| `renkernel.buddy` | `BuddySystem`, a buddy page allocator of orders 0 to 4, with `Page` records and `PageFlag` bits |
| `renkernel.slab` | `SlabAllocator` (`kmalloc`, `phy_kmalloc`, `kfree`, `get_slab`) over twelve `KmemCache` size classes, plus `OutOfMemoryError` |
| `renkernel.vga` | `TextScreen`, a 32x128-cell console of which 30x80 cells are visible, with `putchar`, `puts`, `putint`, `putintx`, `printf` (`%c %d %x %s`), `scroll`, `clear` and `row_text`; `FormatError` |
| `renkernel.ps2` | `Keyboard`, a set-2 scan-code decoder with a 32-slot key buffer and `KeyState` modifiers |
| `renkernel.traps` | `InterruptController`: eight interrupt lines, `register()`, `dispatch()`, `enable()`, `disable()` |
| `renkernel.sd` | `SdCard`, a sector-addressed card whose contents live in a `bytearray`, and `SdError` |
| `renkernel.fscache` | `BufferPool`, a write-back cache of `CacheBuffer` blocks with clock replacement |
| `renkernel.layout` | FAT32 on-disk structures: `DirEntry`, `BootSector`, `Geometry`, `Attr`, and the helpers `get_u16`, `get_u32`, `set_u16`, `set_u32`, `log2_floor` |
| `renkernel.fat` | `FatFileSystem` (`find`, `open`, `read`, `write`, `close`, `flush`, `create`, `alloc_cluster`, `fat_entry`, `set_fat_entry`, `walk_dir`), `FatFile` (`seek`), `FatError`, `short_name()`, `display_name()` |
| `renkernel.ops` | Shell-level operations: `list_dir`, `remove`, `remove_dir`, `copy`, `move`, `cat`, `make_dir`, `link`, `touch`, all bound to one volume by `FileOperations` |

## Installing

```
pip install .
```

Running the tests needs the `test` extra:

```
pip install ".[test]"
pytest
```

## Examples

Setting up memory the way the kernel does at start-up:

```python
from renkernel.bootmm import BootMemory
from renkernel.buddy import BuddySystem
from renkernel.machine import get_phymm_size
from renkernel.slab import SlabAllocator

boot = BootMemory(get_phymm_size(), 16 * 1024 * 1024)
buddy = BuddySystem(boot)
slab = SlabAllocator(buddy)

obj = slab.kmalloc(100)      # a kernel virtual address in the 128-byte cache
slab.kfree(obj)
print(boot.describe())
print(buddy.describe())
```

Requests larger than the biggest slab class (2048 bytes) are served whole
pages by the buddy system.

Handing out process identifiers:

```python
from renkernel.pid import PidMap

pids = PidMap()
first = pids.alloc()     # 1
pids.free(first)
```

Writing to the text console:

```python
from renkernel.vga import TextScreen

screen = TextScreen()
screen.printf("pid %d at %x\n", 7, 0x80001000)
print(screen.row_text(0))    # "pid 7 at 80001000"
```

Decoding keyboard input:

```python
from renkernel.ps2 import Keyboard

kb = Keyboard()
kb.feed([0x12, 0x1C, 0xF0, 0x1C, 0xF0, 0x12])   # shift + "a"
print(kb.getchar())                              # "A"
```

`feed()` returns the bytes the keyboard would be sent back (the LED command
after Caps Lock); `getchar()` returns `None` once the buffer is empty.

Working with a FAT32 image on the SD card model:

```python
from renkernel.fat import FatFileSystem
from renkernel.ops import FileOperations
from renkernel.sd import SdCard

card = SdCard(image_bytes)   # a bytearray holding a partitioned FAT32 image
fs = FatFileSystem(card)
ops = FileOperations(fs)

ops.touch("/notes.txt")
f = fs.open("/notes.txt")
fs.write(f, b"hello")
fs.close(f)
print(ops.cat("/notes.txt"))     # b"hello"
print([e.raw_name for e in ops.list_dir("/")])
```

Only absolute paths are accepted, and names are stored as 8.3 upper-case
short names. The volume is read from the first partition entry of the
image's MBR and must have at least 65525 data clusters.

## Errors

Failures are raised as exceptions: `PidError`, `MemoryError` from the boot
and buddy allocators, `OutOfMemoryError` from the slab allocator,
`FormatError` from `printf`, `SdError` for sectors out of range, `FatError`
for file-system failures, and `ValueError` for invalid arguments.

## What this package does not do

- It has no process scheduler, no shell and no command-line program; the
  pieces are meant to be driven from Python.
- It does not model page tables, TLB refill or exception handling beyond
  the interrupt-line dispatch in `InterruptController`.
- It cannot format a disk: `FatFileSystem` mounts an existing FAT32 image,
  which has to be built by other means.
- `SdCard` keeps its data in memory; saving the image to a file is left to
  the caller (`card.image` is the `bytearray`).