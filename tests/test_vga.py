import pytest

from renkernel.vga import (
    BLANK,
    DEFAULT_CURSOR_FREQ,
    VGA_CHAR_COL,
    VGA_CHAR_MAX_COL,
    FormatError,
    TextScreen,
)


@pytest.fixture
def screen():
    return TextScreen()


def test_putchar_at_encodes_cell(screen):
    screen.putchar_at("A", 0x0F0, 0x00F, 3, 7)
    word = screen.vram[3 * VGA_CHAR_MAX_COL + 7]
    assert word & 0xFF == ord("A")
    assert (word >> 8) & 0xFFF == 0x0F0
    assert word >> 20 == 0x00F


def test_putchar_at_wraps_row_and_column(screen):
    screen.putchar_at("Z", 0xFFF, 0, 33, 130)
    assert screen.row_text(1).strip() == "Z"
    assert screen.vram[1 * VGA_CHAR_MAX_COL + 2] & 0xFF == ord("Z")


def test_cursor_register_layout(screen):
    screen.puts("hello")
    reg = screen.cursor_register()
    assert reg >> 16 == DEFAULT_CURSOR_FREQ
    assert (reg >> 8) & 0xFF == screen.row == 0
    assert reg & 0xFF == screen.col == 5
    assert screen.cursor == reg


def test_puts_returns_length_and_writes_row(screen):
    assert screen.puts("kernel") == 6
    assert screen.row_text(0) == "kernel"


def test_newline_moves_to_next_row(screen):
    screen.puts("one\ntwo")
    assert screen.row_text(0) == "one"
    assert screen.row_text(1) == "two"
    assert (screen.row, screen.col) == (1, 3)


def test_carriage_return_is_ignored(screen):
    screen.puts("a\rb")
    assert screen.row_text(0) == "ab"


def test_long_line_wraps_at_visible_width(screen):
    screen.puts("x" * (VGA_CHAR_COL + 1))
    assert screen.row_text(0) == "x" * VGA_CHAR_COL
    assert screen.row_text(1) == "x"


def test_tab_aligns_to_four(screen):
    screen.puts("ab\t")
    assert screen.col % 4 == 0
    assert screen.col > 2


def test_scroll_on_last_text_row(screen):
    screen.puts("top")
    screen.row, screen.col = 28, 0
    screen.puts("bottom\n")
    assert screen.row == 28
    assert screen.row_text(27) == "bottom"
    assert screen.row_text(28) == ""
    assert screen.row_text(0) == ""


def test_clear_blanks_rows_and_homes_cursor(screen):
    screen.puts("abc\ndef")
    screen.clear(31)
    assert (screen.row, screen.col) == (0, 0)
    assert all(word == BLANK for word in screen.vram[: 2 * VGA_CHAR_MAX_COL])


def test_putint_negative(screen):
    assert screen.putint(-42) == str(-42)
    assert screen.row_text(0) == "-42"


def test_putint_zero(screen):
    screen.putint(0)
    assert screen.row_text(0) == "0"


def test_putintx_hex(screen):
    assert screen.putintx(255) == "ff"
    assert screen.putintx(-1) == "ffffffff"


def test_printf_conversions(screen):
    count = screen.printf("%d %x %s %c", 7, 255, "hi", "!")
    assert count == 4
    assert screen.row_text(0) == "7 ff hi !"


def test_printf_unknown_conversion_raises(screen):
    with pytest.raises(FormatError):
        screen.printf("value %q", 1)


def test_printf_missing_argument_raises(screen):
    with pytest.raises(FormatError):
        screen.printf("%d and %d", 1)


def test_printf_trailing_percent_raises(screen):
    with pytest.raises(FormatError):
        screen.printf("50%")