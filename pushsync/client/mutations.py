"""
Optimistic state with compensation, and in-flight tokens.

MutationQueue keeps two things: the last state the server confirmed (the
base) and an ordered list of local mutations. The visible state is always
the base with every outstanding mutation replayed on top, in the order the
mutations were made. That gives three properties for free:

  * rollback is just dropping the failed mutation and replaying the rest,
    so a failure never undoes an unrelated later change;
  * replacing the base (a refresh from the server) keeps pending local
    changes visible on the new data;
  * a mutation confirmed out of order is folded into the base only once
    every earlier mutation has resolved, so the base follows request order.

A server read that was sent before a mutation committed may come back
without it. Readers take a mark with ``begin_read()`` and hand it to
``rebase()``, which replays every mutation committed since the mark.

Mutation functions must be pure: take a state, return a new one.
"""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PENDING = "pending"
_COMMITTED = "committed"


@dataclass(eq=False)
class PendingMutation(Generic[T]):
    seq: int
    label: str
    apply: Callable[[T], T]
    status: str = field(default=_PENDING)
    settled_at: int = 0


class MutationQueue(Generic[T]):
    def __init__(self, base: T) -> None:
        self._base = base
        self._entries: list[PendingMutation[T]] = []
        self._seq = itertools.count(1)
        self._view = base
        # Mutations folded into the base while a server read was in flight.
        self._settled: list[PendingMutation[T]] = []
        self._epoch = 0
        self._reads: list[int] = []

    @property
    def base(self) -> T:
        return self._base

    @property
    def view(self) -> T:
        return self._view

    @property
    def pending(self) -> list[PendingMutation[T]]:
        return [m for m in self._entries if m.status == _PENDING]

    def push(self, label: str, apply: Callable[[T], T]) -> PendingMutation[T]:
        """Record a local change and make it visible immediately."""
        mutation = PendingMutation(seq=next(self._seq), label=label, apply=apply)
        self._entries.append(mutation)
        self._view = mutation.apply(self._view)
        return mutation

    def commit(self, mutation: PendingMutation[T]) -> None:
        """The server accepted ``mutation``."""
        if mutation not in self._entries:
            return
        mutation.status = _COMMITTED
        self._fold()
        self._rebuild()

    def rollback(self, mutation: PendingMutation[T]) -> None:
        """The server rejected ``mutation``: compensate by replaying without it."""
        if mutation not in self._entries:
            return
        self._entries.remove(mutation)
        logger.debug("Rolled back mutation #%s (%s)", mutation.seq, mutation.label)
        self._fold()
        self._rebuild()

    def begin_read(self) -> int:
        """Mark the start of a server read.

        Pass the mark to ``rebase()`` when the result arrives and always
        release it with ``end_read()``. Mutations committed after the mark
        are replayed onto that result, since the server may have built it
        before they landed.
        """
        self._reads.append(self._epoch)
        return self._epoch

    def end_read(self, mark: int) -> None:
        if mark in self._reads:
            self._reads.remove(mark)
        if not self._reads:
            self._settled.clear()
        else:
            oldest = min(self._reads)
            self._settled = [m for m in self._settled if m.settled_at > oldest]

    def rebase(self, base: T, since: int | None = None) -> None:
        """Replace the confirmed state; outstanding mutations stay applied.

        With ``since`` (a mark from ``begin_read()``), mutations committed
        after that mark are folded into the new base again.
        """
        if since is not None:
            for mutation in self._settled:
                if mutation.settled_at > since:
                    base = mutation.apply(base)
        self._base = base
        self._rebuild()

    def _fold(self) -> None:
        while self._entries and self._entries[0].status == _COMMITTED:
            head = self._entries.pop(0)
            self._base = head.apply(self._base)
            self._epoch += 1
            if self._reads:
                head.settled_at = self._epoch
                self._settled.append(head)

    def _rebuild(self) -> None:
        view = self._base
        for mutation in self._entries:
            view = mutation.apply(view)
        self._view = view


class InFlightToken:
    """Generation counter: a result is only applied if its token is still current.

    Each operation calls begin() when it starts; anything that should make
    older results irrelevant (a newer operation, teardown) advances the
    counter.
    """

    def __init__(self) -> None:
        self._generation = 0

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def invalidate(self) -> None:
        self._generation += 1
