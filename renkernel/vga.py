"""Character-mode VGA text screen with a software cursor."""

VGA_CHAR_MAX_ROW = 32
VGA_CHAR_MAX_COL = 128
VGA_CHAR_ROW = 30
VGA_CHAR_COL = 80

VGA_RED = 0x00F
VGA_GREEN = 0x0F0
VGA_BLUE = 0xF00
VGA_BLACK = 0x000
VGA_WHITE = 0xFFF

# Foreground white, background black, no character.
BLANK = 0x000FFF00
DEFAULT_CURSOR_FREQ = 31

_HEX_DIGITS = "0123456789abcdef"
_LAST_TEXT_ROW = VGA_CHAR_ROW - 2


class FormatError(ValueError):
    """Raised for an unsupported conversion or a missing argument in printf."""


def _char_code(ch):
    if isinstance(ch, str):
        if len(ch) != 1:
            raise ValueError(f"expected a single character, got {ch!r}")
        return ord(ch)
    return int(ch)


def _to_int32(value):
    return ((int(value) + (1 << 31)) % (1 << 32)) - (1 << 31)


class TextScreen:
    """A 32x128 word character buffer of which 30x80 cells are visible."""

    def __init__(self):
        self.vram = [BLANK] * (VGA_CHAR_MAX_ROW * VGA_CHAR_MAX_COL)
        self.row = 0
        self.col = 0
        self.freq = DEFAULT_CURSOR_FREQ
        self.cursor = 0
        self._update_cursor()

    def cursor_register(self):
        """Value of the cursor register: frequency, row and column, 8 bits each."""
        return ((self.freq & 0xFF) << 16) + ((self.row & 0xFF) << 8) + (self.col & 0xFF)

    def _update_cursor(self):
        self.cursor = self.cursor_register()

    def _fill(self, offset, count):
        if count > 0:
            self.vram[offset:offset + count] = [BLANK] * count

    def clear(self, scope):
        """Blank the first ``scope`` rows (mod 32) and home the cursor."""
        scope &= 31
        self.row = 0
        self.col = 0
        self._update_cursor()
        self._fill(0, scope * VGA_CHAR_MAX_COL)

    def scroll(self):
        """Move the text rows up by one and blank the last text row."""
        width = VGA_CHAR_MAX_COL
        moved = _LAST_TEXT_ROW * width
        self.vram[0:moved] = self.vram[width:width + moved]
        self._fill(moved, width)

    def putchar_at(self, ch, fc, bg, row, col):
        """Write one character cell without moving the cursor."""
        row &= 31
        col &= 127
        word = ((bg & 0xFFF) << 20) + ((fc & 0xFFF) << 8) + (_char_code(ch) & 0xFF)
        self.vram[row * VGA_CHAR_MAX_COL + col] = word

    def putchar(self, ch, fc=VGA_WHITE, bg=VGA_BLACK):
        """Write a character at the cursor, handling newline, tab and wrapping."""
        code = _char_code(ch)
        if code == ord("\r"):
            return ch
        if code == ord("\n"):
            self._fill(self.row * VGA_CHAR_MAX_COL + self.col, VGA_CHAR_COL - self.col)
            self.col = 0
            if self.row == _LAST_TEXT_ROW:
                self.scroll()
            else:
                self.row += 1
        elif code == ord("\t"):
            if self.col >= VGA_CHAR_COL - 4:
                self.putchar("\n", 0, 0)
            else:
                self._fill(self.row * VGA_CHAR_MAX_COL + self.col, (4 - self.col) & 3)
                self.col = (self.col + 4) & -4
        else:
            if self.col == VGA_CHAR_COL:
                self.putchar("\n", 0, 0)
            self.putchar_at(code, fc, bg, self.row, self.col)
            self.col += 1
        self._update_cursor()
        return ch

    def puts(self, text, fc=VGA_WHITE, bg=VGA_BLACK):
        """Write a string; return the number of characters written."""
        for ch in text:
            self.putchar(ch, fc, bg)
        return len(text)

    def putint(self, value, fc=VGA_WHITE, bg=VGA_BLACK):
        """Write a signed 32-bit integer in decimal; return the text written."""
        text = str(_to_int32(value))
        self.puts(text, fc, bg)
        return text

    def putintx(self, value, fc=VGA_WHITE, bg=VGA_BLACK):
        """Write an unsigned 32-bit integer in lower-case hex; return the text written."""
        value = int(value) & 0xFFFFFFFF
        digits = []
        while value:
            digits.append(_HEX_DIGITS[value & 15])
            value >>= 4
        text = "".join(reversed(digits)) or "0"
        self.puts(text, fc, bg)
        return text

    def printf(self, fmt, *args):
        """Formatted output supporting %c, %d, %x and %s; return the conversion count."""
        values = iter(args)
        count = 0
        i = 0
        while i < len(fmt):
            ch = fmt[i]
            if ch != "%":
                self.putchar(ch)
                i += 1
                continue
            spec = fmt[i + 1:i + 2]
            if spec not in ("c", "d", "x", "s"):
                raise FormatError(f"unsupported conversion {('%' + spec)!r}")
            try:
                value = next(values)
            except StopIteration:
                raise FormatError(f"missing argument for %{spec}") from None
            if spec == "c":
                self.putchar(value if isinstance(value, str) else int(value) & 0xFF)
            elif spec == "d":
                self.putint(value)
            elif spec == "x":
                self.putintx(value)
            else:
                self.puts(str(value))
            count += 1
            i += 2
        return count

    def row_text(self, row):
        """Visible text of a row, with empty cells as spaces and trailing spaces removed."""
        base = row * VGA_CHAR_MAX_COL
        cells = self.vram[base:base + VGA_CHAR_COL]
        return "".join(chr(w & 0xFF) if w & 0xFF else " " for w in cells).rstrip()