"""Machine parameters and paging constants of the target board."""

MACHINE_MMSIZE = 128 * 1024 * 1024  # 128 MB of physical memory
MACHINE_SDSIZE = 16 * 1024 * 1024 * 2  # 32M sectors
CHAR_VRAM_SIZE = 128 * 32 * 4
PAGE_TABLE_SIZE = 256 * 1024
GRAPHIC_VRAM_SIZE = 1024 * 512 * 4

BIOS_ENTRY = 0xBFC00000
KERNEL_STACK_BOTTOM = 0x81000000
KERNEL_CODE_ENTRY = 0x80001000
KERNEL_ENTRY = 0x80000000
USER_ENTRY = 0x00000000

CHAR_VRAM = 0xBFC04000
GRAPHIC_VRAM = 0xBFE0000
GPIO_SWITCH = 0xBFC09000
GPIO_BUTTON = 0xBFC09004
GPIO_SEG = 0xBFC09008
GPIO_LED = 0xBFC0900C
GPIO_PS2_DATA = 0xBFC09010
GPIO_PS2_CTRL = 0xBFC09014
GPIO_UART_DATA = 0xBFC09018
GPIO_UART_CTRL = 0xBFC0901C
GPIO_CURSOR = 0xBFC09020
VGA_MODE = 0xBFC09024

WORD_MASK = 0xFFFFFFFF

PAGE_SHIFT = 12
PAGE_SIZE = 1 << PAGE_SHIFT
PAGE_MASK = ~(PAGE_SIZE - 1) & WORD_MASK
INDEX_MASK = 0x3FF
PGD_SHIFT = 22
PGD_SIZE = 1 << PAGE_SHIFT
PGD_MASK = ~((1 << PGD_SHIFT) - 1) & WORD_MASK


def get_phymm_size():
    """Return the size of physical memory in bytes."""
    return MACHINE_MMSIZE


def _check_address(addr):
    if addr < 0 or addr > WORD_MASK:
        raise ValueError(f"address out of range: {addr:#x}")


def page_align_down(addr):
    """Round a 32-bit address down to the start of its page."""
    _check_address(addr)
    return addr & PAGE_MASK


def page_align_up(addr):
    """Round a 32-bit address up to the next page boundary (wrapping at 4 GB)."""
    _check_address(addr)
    return ((addr + PAGE_SIZE - 1) & WORD_MASK) & PAGE_MASK