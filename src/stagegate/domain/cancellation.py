"""
Cooperative cancellation signal shared between a run and its in-flight stage.
"""

import threading

from stagegate.domain.exceptions import WorkflowCancelled


class CancellationToken:
    """
    Thread-safe, one-shot cancellation signal.

    Child tokens are cancelled whenever their parent is, but cancelling a
    child (e.g. on a stage timeout) leaves the parent untouched.
    """

    def __init__(self, parent: "CancellationToken | None" = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason = ""
        self._children: list[CancellationToken] = []
        self._parent = parent
        if parent is not None:
            parent._adopt(self)

    def _adopt(self, child: "CancellationToken") -> None:
        with self._lock:
            self._children.append(child)
            cancelled, reason = self._event.is_set(), self._reason
        if cancelled:
            child.cancel(reason)

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled together with this one."""
        return CancellationToken(parent=self)

    def release(self) -> None:
        """Detach from the parent once the work this token guards is over."""
        parent, self._parent = self._parent, None
        if parent is None:
            return
        with parent._lock:
            parent._children = [c for c in parent._children if c is not self]

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel(reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WorkflowCancelled(self._reason or "cancelled")
