import pytest

from renkernel.ps2 import (
    BUFFER_SIZE,
    KEYBOARD_ACK,
    SET_LEDS_COMMAND,
    KeyState,
    Keyboard,
)

KEY_A = 0x1C


@pytest.fixture
def keyboard():
    return Keyboard()


def test_plain_key_is_lowercase(keyboard):
    keyboard.feed([KEY_A])
    assert keyboard.getchar() == "a"


def test_shift_gives_uppercase(keyboard):
    keyboard.feed([0x12, KEY_A])
    assert KeyState.SHIFT in keyboard.state
    assert keyboard.getchar() == "A"


def test_shift_release_clears_state(keyboard):
    keyboard.feed([0x12, 0xF0, 0x12])
    assert KeyState.SHIFT not in keyboard.state


def test_break_codes_are_not_buffered(keyboard):
    keyboard.feed([0xF0, KEY_A])
    assert keyboard.getkey() is None


def test_getkey_returns_scan_code(keyboard):
    keyboard.feed([KEY_A])
    assert keyboard.getkey() == KEY_A
    assert keyboard.getkey() is None


def test_caps_lock_sends_led_command_and_state(keyboard):
    assert keyboard.feed([0x58]) == [SET_LEDS_COMMAND]
    assert KeyState.CAPSLOCK in keyboard.state
    assert keyboard.feed([KEYBOARD_ACK]) == [int(KeyState.CAPSLOCK)]
    assert keyboard.feed([KEYBOARD_ACK]) == []


def test_caps_lock_matches_shift(keyboard):
    plain = keyboard.scan_to_ascii(KEY_A)
    keyboard.feed([0x58])
    assert keyboard.scan_to_ascii(KEY_A) == plain.upper()
    keyboard.feed([0x12])
    assert keyboard.scan_to_ascii(KEY_A) == plain


def test_extended_ctrl_and_alt(keyboard):
    keyboard.feed([0xE0, 0x14, 0xE0, 0x11])
    assert KeyState.CTRL in keyboard.state
    assert KeyState.ALT in keyboard.state
    keyboard.feed([0xE0, 0xF0, 0x14, 0xE0, 0xF0, 0x11])
    assert keyboard.state == KeyState.NONE


def test_scan_to_ascii_rejects_out_of_range(keyboard):
    assert keyboard.scan_to_ascii(0x80) is None
    assert keyboard.scan_to_ascii(0x7F) is None
    assert keyboard.scan_to_ascii(None) is None


def test_getchar_skips_unmapped_keys(keyboard):
    keyboard.feed([0x05, KEY_A])
    assert keyboard.getchar() == keyboard.scan_to_ascii(KEY_A)
    assert keyboard.getchar() is None


def test_buffer_keeps_order(keyboard):
    keys = list(range(0x20, 0x20 + 10))
    keyboard.feed(keys)
    assert [keyboard.getkey() for _ in keys] == keys


def test_buffer_resets_after_full_pass(keyboard):
    keys = list(range(1, BUFFER_SIZE + 1))
    keys = [k for k in keys if k not in (0x11, 0x12, 0x14)]
    keys += list(range(0x60, 0x60 + BUFFER_SIZE - len(keys)))
    keyboard.feed(keys)
    assert [keyboard.getkey() for _ in keys] == keys
    assert keyboard.getkey() is None


def test_buffer_overwrites_oldest_on_wrap(keyboard):
    keys = list(range(0x20, 0x20 + BUFFER_SIZE + 1))
    keyboard.feed(keys)
    assert keyboard.getkey() == keys[-1]
    assert keyboard.getkey() == keys[1]