"""Interrupt controller: eight hardware lines routed to registered handlers."""

INTERRUPT_LINES = 8
STATUS_IE = 0x1
_STATUS_MASK = 0xFFFFFFFF


class InterruptController:
    """Keeps the status register's interrupt bits and the handler table."""

    def __init__(self):
        self.status = 0
        self.handlers = [None] * INTERRUPT_LINES

    @property
    def enabled(self):
        return bool(self.status & STATUS_IE)

    def enable(self):
        """Turn interrupts on; return whether they were on before."""
        old = self.enabled
        self.status |= STATUS_IE
        return old

    def disable(self):
        """Turn interrupts off; return whether they were on before."""
        old = self.enabled
        self.status &= ~STATUS_IE & _STATUS_MASK
        return old

    def register(self, index, handler):
        """Install ``handler`` on line ``index`` (mod 8) and unmask that line."""
        index &= INTERRUPT_LINES - 1
        self.handlers[index] = handler
        self.status |= 1 << (index + 8)

    def dispatch(self, status, cause, context):
        """Call the handler of every pending line in ``cause``; return the lines served."""
        pending = cause >> 8
        served = []
        for line, handler in enumerate(self.handlers):
            if pending & 1 and handler is not None:
                handler(status, cause, context)
                served.append(line)
            pending >>= 1
        return served