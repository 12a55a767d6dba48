"""PS/2 keyboard: scan-code decoding, modifier tracking and a key ring buffer."""

from enum import IntFlag

BUFFER_SIZE = 32
KEYBOARD_ACK = 0xFA
SET_LEDS_COMMAND = 0xED

_UNMAPPED = 0xFF

_UPPERCASE = (
    0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x09, 0x7E, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x51,
    0x21, 0xff, 0xff, 0xff, 0x5a, 0x53, 0x41, 0x57, 0x40, 0xff, 0xff, 0x43, 0x58, 0x44, 0x45, 0x24, 0x23, 0xff, 0xff, 0x20, 0x56, 0x46,
    0x54, 0x52, 0x25, 0xff, 0xff, 0x4e, 0x42, 0x48, 0x47, 0x59, 0x5E, 0xff, 0xff, 0xff, 0x4d, 0x4a, 0x55, 0x26, 0x2A, 0xff, 0xff, 0x3c,
    0x4b, 0x49, 0x4f, 0x29, 0x28, 0xff, 0xff, 0x3E, 0x3f, 0x4c, 0x3A, 0x50, 0x5F, 0xff, 0xff, 0xff, 0x22, 0xff, 0x7B, 0x2B, 0xff, 0xff,
    0xff, 0xff, 0x0a, 0x7D, 0xff, 0x7C, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x08, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff,
    0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x1B, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff,
)

_LOWERCASE = (
    0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x09, 0x60, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x71,
    0x31, 0xff, 0xff, 0xff, 0x7a, 0x73, 0x61, 0x77, 0x32, 0xff, 0xff, 0x63, 0x78, 0x64, 0x65, 0x34, 0x33, 0xff, 0xff, 0x20, 0x76, 0x66,
    0x74, 0x72, 0x35, 0xff, 0xff, 0x6e, 0x62, 0x68, 0x67, 0x79, 0x36, 0xff, 0xff, 0xff, 0x6d, 0x6a, 0x75, 0x37, 0x38, 0xff, 0xff, 0x2c,
    0x6b, 0x69, 0x6f, 0x30, 0x39, 0xff, 0xff, 0x2e, 0x2f, 0x6c, 0x3b, 0x70, 0x2d, 0xff, 0xff, 0xff, 0x27, 0xff, 0x5b, 0x3d, 0xff, 0xff,
    0xff, 0xff, 0x0a, 0x5d, 0xff, 0x5c, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x08, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff,
    0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0x1B, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff, 0xff,
)


class KeyState(IntFlag):
    NONE = 0
    SCRLOCK = 1
    NUMLOCK = 2
    CAPSLOCK = 4
    SHIFT = 8
    CTRL = 16
    ALT = 32


_SET = {
    0x12: KeyState.SHIFT,      # left shift down
    0x59: KeyState.SHIFT,      # right shift down
    0x14: KeyState.CTRL,       # left ctrl down
    0xE014: KeyState.CTRL,     # right ctrl down
    0x11: KeyState.ALT,        # left alt down
    0xE011: KeyState.ALT,      # right alt down
}

_CLEAR = {
    0xF012: KeyState.SHIFT,
    0xF059: KeyState.SHIFT,
    0xF014: KeyState.CTRL,
    0xE0F014: KeyState.CTRL,
    0xF011: KeyState.ALT,
    0xE0F011: KeyState.ALT,
}

_CAPS_LOCK_DOWN = 0x58


class Keyboard:
    """Decodes bytes from a set-2 PS/2 keyboard into buffered key codes."""

    def __init__(self):
        self.state = KeyState.NONE
        self._key_buffer = 0
        self._awaiting_led_ack = False
        self._reset_buffer()

    def _reset_buffer(self):
        self._slots = [None] * BUFFER_SIZE
        self._wptr = 0
        self._rptr = 0

    def feed(self, data):
        """Process bytes received from the keyboard; return the bytes sent back to it."""
        sent = []
        for byte in data:
            byte &= 0xFF
            if byte == KEYBOARD_ACK:
                if self._awaiting_led_ack:
                    sent.append(int(self.state) & 7)
                self._awaiting_led_ack = False
                continue
            self._key_buffer = ((self._key_buffer << 8) | byte) & 0xFFFFFFFF
            if byte >= 0x80:
                continue
            key = self._key_buffer
            if key & 0x7F == key:
                self._slots[self._wptr] = key
                self._wptr = (self._wptr + 1) % BUFFER_SIZE
            if key == _CAPS_LOCK_DOWN:
                self.state ^= KeyState.CAPSLOCK
                self._awaiting_led_ack = True
                sent.append(SET_LEDS_COMMAND)
            elif key in _SET:
                self.state |= _SET[key]
            elif key in _CLEAR:
                self.state &= ~_CLEAR[key]
            self._key_buffer = 0
        return sent

    def getkey(self):
        """Take the next buffered scan code, or None if the buffer is empty."""
        key = self._slots[self._rptr]
        if key is None:
            return None
        self._slots[self._rptr] = None
        self._rptr += 1
        if self._rptr == BUFFER_SIZE:
            self._reset_buffer()
        return key

    def scan_to_ascii(self, key):
        """Translate a scan code with the current modifiers; None if it has no character."""
        if key is None or key & 0x7F != key:
            return None
        upper = bool(self.state & KeyState.CAPSLOCK) != bool(self.state & KeyState.SHIFT)
        table = _UPPERCASE if upper else _LOWERCASE
        if key >= len(table) or table[key] == _UNMAPPED:
            return None
        return chr(table[key])

    def getchar(self):
        """Return the next buffered key that maps to a character, or None when none is left."""
        while True:
            key = self.getkey()
            if key is None:
                return None
            ch = self.scan_to_ascii(key)
            if ch is not None:
                return ch