"""
Core Module - Interrupts.

============================================================
RESPONSIBILITY
============================================================
Turns termination signals into BootstrapInterrupted so every
acquired resource is released on the way out.

- interruption_handlers(): installs the handlers for a run
- deferred_interrupts(): teardown sections that must finish;
  a signal arriving inside one is recorded and raised (or
  dropped) once the section is complete

============================================================
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from .exceptions import BootstrapInterrupted


logger = logging.getLogger(__name__)

INTERRUPT_SIGNALS = ("SIGTERM", "SIGHUP", "SIGINT")


class _Deferral:
    """Teardown nesting depth and the first signal received inside it."""

    def __init__(self) -> None:
        self.depth = 0
        self.pending: Optional[str] = None


_deferral = _Deferral()


def _handler(signum: int, frame: Any) -> None:
    name = signal.Signals(signum).name
    if _deferral.depth:
        logger.warning(f"Received signal {name} during teardown; deferred")
        _deferral.pending = _deferral.pending or name
        return
    logger.warning(f"Received signal {name}")
    raise BootstrapInterrupted(name)


@contextmanager
def interruption_handlers(enabled: bool = True) -> Iterator[None]:
    """
    Raise BootstrapInterrupted from termination signals.

    The exception unwinds through the transient server scope, so
    the server is stopped and its socket directory removed.
    Original handlers are restored on exit. Only the main thread
    can install handlers; elsewhere this is a no-op.
    """
    if not enabled or threading.current_thread() is not threading.main_thread():
        yield
        return

    original: Dict[int, Any] = {}
    for name in INTERRUPT_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        original[sig] = signal.getsignal(sig)
        signal.signal(sig, _handler)

    try:
        yield
    finally:
        for sig, previous in original.items():
            signal.signal(sig, previous)


@contextmanager
def deferred_interrupts(raise_pending: bool = True) -> Iterator[None]:
    """
    Hold back interrupts until the block completes.

    On completion of the outermost section a deferred signal is
    raised as BootstrapInterrupted when ``raise_pending`` is set.
    Otherwise it is dropped, because the caller is already
    unwinding from another error.
    """
    _deferral.depth += 1
    try:
        yield
    except BaseException:
        _deferral.depth -= 1
        if not _deferral.depth:
            _drop_pending()
        raise
    _deferral.depth -= 1

    if not _deferral.depth and _deferral.pending:
        if raise_pending:
            name, _deferral.pending = _deferral.pending, None
            raise BootstrapInterrupted(name)
        _drop_pending()


def _drop_pending() -> None:
    if _deferral.pending:
        logger.warning(f"Deferred signal {_deferral.pending} dropped; already unwinding")
        _deferral.pending = None
