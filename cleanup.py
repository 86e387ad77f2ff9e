# cleanup.py
import itertools
import signal
import threading

from file_utils import log_message


class CleanupScope:
    """Run-scoped registry of cleanup closures.

    Components that create temporary files register a closure here. close()
    runs every closure exactly once (last registered first), on normal
    completion or on interruption. Calling close() again does nothing.
    """

    def __init__(self, log_callback=None):
        self.log_callback = log_callback
        self._closures = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._closed = False
        self._previous_handlers = {}

    @property
    def closed(self):
        return self._closed

    def register(self, fn):
        """Registers a closure and returns a token for unregister()."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Cannot register a cleanup closure on a closed scope")
            token = next(self._ids)
            self._closures[token] = fn
            return token

    def unregister(self, token):
        with self._lock:
            self._closures.pop(token, None)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            closures = [self._closures[token] for token in sorted(self._closures, reverse=True)]
            self._closures.clear()
        for fn in closures:
            try:
                fn()
            except Exception as e:
                log_message(f"  Warning: cleanup step failed: {e}", self.log_callback)
        self.restore_signal_handlers()

    def install_signal_handlers(self, signals=(signal.SIGINT, signal.SIGTERM)):
        """Cleans up on SIGINT/SIGTERM, then lets the interrupt propagate. Main thread only."""
        for sig in signals:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def restore_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            return
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers = {}

    def _handle_signal(self, signum, frame):
        log_message(f"\nReceived {signal.Signals(signum).name}, cleaning up temporary files...", self.log_callback)
        self.close()
        if signum == signal.SIGINT:
            raise KeyboardInterrupt
        raise SystemExit(128 + signum)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
