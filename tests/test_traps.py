import pytest

from renkernel.traps import STATUS_IE, InterruptController


@pytest.fixture
def controller():
    return InterruptController()


def test_enable_returns_previous_state(controller):
    assert controller.enable() is False
    assert controller.enabled
    assert controller.enable() is True


def test_disable_returns_previous_state(controller):
    controller.enable()
    assert controller.disable() is True
    assert not controller.status & STATUS_IE
    assert controller.disable() is False


def test_register_unmasks_line(controller):
    mask = 1 << (2 + 8)
    assert controller.status & mask == 0
    calls = []
    controller.register(2, lambda *a: calls.append(a))
    assert controller.status & mask == mask
    assert controller.dispatch(0, mask, None) == [2]
    assert calls == [(0, mask, None)]


def test_register_index_wraps(controller):
    def handler(*args):
        return None

    controller.register(10, handler)
    assert controller.handlers[2] is handler


def test_dispatch_calls_pending_handlers_in_order(controller):
    calls = []
    controller.register(0, lambda s, c, ctx: calls.append((0, s, c, ctx)))
    controller.register(5, lambda s, c, ctx: calls.append((5, s, c, ctx)))
    cause = (1 << (0 + 8)) | (1 << (5 + 8))
    served = controller.dispatch(7, cause, "ctx")
    assert served == [0, 5]
    assert calls == [(0, 7, cause, "ctx"), (5, 7, cause, "ctx")]


def test_dispatch_ignores_lines_without_handler(controller):
    calls = []
    controller.register(1, lambda *a: calls.append(a))
    served = controller.dispatch(0, 1 << (3 + 8), None)
    assert served == []
    assert calls == []


def test_dispatch_ignores_unpending_handlers(controller):
    calls = []
    controller.register(4, lambda *a: calls.append(a))
    assert controller.dispatch(0, 1 << (1 + 8), None) == []
    assert calls == []