"""Textual integration for tickflow. Opt-in — requires textual.

Observers created here render into widgets. When the widget tree is not in a
queryable state (app not running, paused for widget replacement, widget not
mounted yet) the run is abandoned with Cancelled and retried on the next tick,
so no render is lost. UI event handlers mutate state through a dispatcher, which
flushes once per event and marshals off-thread calls onto the app thread.
"""

import logging
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from tickflow.errors import Cancelled

logger = logging.getLogger("tickflow.textual")

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded observers during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def observe(app, session, fn, gate=None, **kwargs):
    """session.observer() that only runs while the app's widgets are queryable."""

    def _guarded():
        if not is_safe(app):
            raise Cancelled()
        try:
            fn()
        except NoMatches as exc:
            logger.debug("Widget not mounted yet (%s); retrying next tick", exc)
            raise Cancelled() from exc

    _guarded.__name__ = getattr(fn, "__name__", "observer")
    return session.observer(_guarded, gate, **kwargs)


def dispatcher(app, session):
    """Build dispatch(fn, *args): run fn(*args) as one mutation batch, then flush.

    Create it on the app thread. Called from any other thread, the batch is
    marshaled back via call_from_thread.
    """
    _main = threading.get_ident()

    def _batch(fn, args):
        with session.transaction():
            fn(*args)

    def dispatch(fn, *args):
        if threading.get_ident() != _main:
            app.call_from_thread(_batch, fn, args)
        else:
            _batch(fn, args)

    return dispatch
