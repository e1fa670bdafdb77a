"""
    Change notifications for Libris.

    Subscribers register per table and receive a `ChangeEvent` after a
    transaction touching that table commits. Events say that something
    changed, not what; consumers reload whatever they display. Delivery
    is advisory: a failing handler is logged and never affects the
    transaction that triggered it.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable
from sqlalchemy import event

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'

_PENDING_KEY = 'libris_pending_changes'


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str


class ChangeFeed:

    def __init__(self):
        self._handlers = defaultdict(list)

    def subscribe(self, table: str, handler: Callable[[ChangeEvent], None]):
        """Calls `handler` for every committed change to `table`; returns a
        function that cancels the subscription.
        """
        self._handlers[table].append(handler)

        def unsubscribe():
            if handler in self._handlers[table]:
                self._handlers[table].remove(handler)
        return unsubscribe

    def publish(self, change: ChangeEvent):
        for handler in list(self._handlers.get(change.table, ())):
            try:
                handler(change)
            except Exception as e:
                logger.exception(f"Change handler for {change.table} failed: {e}")

    def attach(self, session_factory):
        """Listens to sessions made by `session_factory` (a sessionmaker or
        Session class) and publishes their changes on commit.
        """
        event.listen(session_factory, 'after_flush', self._collect)
        event.listen(session_factory, 'after_commit', self._flush_pending)
        event.listen(session_factory, 'after_soft_rollback', self._discard)
        return self

    def detach(self, session_factory):
        event.remove(session_factory, 'after_flush', self._collect)
        event.remove(session_factory, 'after_commit', self._flush_pending)
        event.remove(session_factory, 'after_soft_rollback', self._discard)

    @staticmethod
    def _collect(session, flush_context):
        pending = session.info.setdefault(_PENDING_KEY, [])
        for action, objs in ((INSERT, session.new), (UPDATE, session.dirty),
                             (DELETE, session.deleted)):
            for obj in objs:
                table = getattr(obj, '__tablename__', None)
                if table:
                    change = ChangeEvent(table, action)
                    if change not in pending:
                        pending.append(change)

    def _flush_pending(self, session):
        for change in session.info.pop(_PENDING_KEY, []):
            self.publish(change)

    @staticmethod
    def _discard(session, previous_transaction):
        session.info.pop(_PENDING_KEY, None)


feed = ChangeFeed()
