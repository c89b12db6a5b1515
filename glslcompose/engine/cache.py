"""
The variant cache: a keyed table of promises.

Each key goes through the states absent -> pending -> ready or failed. While
a key is pending, other requesters for the same key wait for the one
resolution in flight. The table lock is only held to look up and update
entries, never while resolving, so unrelated keys resolve in parallel.
"""

import threading
from concurrent.futures import Future

from ..errors import StaleVariantError
from ..utils import logger
from ..utils.enums import VariantState


__all__ = ["VariantCache"]


class CacheEntry:
    """An entry in the variant cache."""

    __slots__ = ["key", "state", "future", "value", "error", "dependencies", "epochs"]

    def __init__(self, key, dependencies, epochs):
        self.key = key
        self.state = VariantState.pending
        self.future = Future()
        self.value = None
        self.error = None
        self.dependencies = frozenset(dependencies)
        # The epochs of the dependencies when the resolution started
        self.epochs = epochs

    def __repr__(self):
        return f"<CacheEntry {self.state} {self.key!r}>"


class VariantCache:
    """A cache for resolved variants.

    Parameters
    ----------
    name : str
        A name for this cache, used in log messages and stats.
    """

    def __init__(self, name="variants"):
        assert isinstance(name, str)
        self.name = name
        self._entries = {}
        # Template id -> number of times it was invalidated
        self._epochs = {}
        self._lock = threading.Lock()
        self._enabled = True
        self.hits = 0
        self.misses = 0

    def __repr__(self):
        return f"<VariantCache {self.name!r} with {len(self._entries)} entries at {hex(id(self))}>"

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def get_stats(self):
        """Get the number of ready entries, the number of hits, and the number of misses."""
        with self._lock:
            nready = sum(
                1 for e in self._entries.values() if e.state == VariantState.ready
            )
        return nready, self.hits, self.misses

    def enable(self):
        """Enable this cache."""
        self._enabled = True

    def disable(self):
        """Disable this cache. Every request then resolves, and nothing is stored."""
        self._enabled = False

    def state(self, key):
        """Get the VariantState for the given key."""
        with self._lock:
            entry = self._entries.get(key)
        return VariantState.absent if entry is None else entry.state

    def get(self, key, builder, dependencies=()):
        """Get the value for the given key, calling ``builder()`` to produce it on a miss.

        Parameters
        ----------
        key : hashable
            The cache key.
        builder : callable
            Called without arguments to produce the value. Exceptions that it
            raises are stored and re-raised for later requests of this key,
            until the entry is retried, discarded or invalidated.
        dependencies : iterable
            The template ids that the value is derived from. When one of these
            is invalidated while the builder runs, the value is not stored and
            StaleVariantError is raised instead.
        """
        if not self._enabled:
            self.misses += 1
            return builder()

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                epochs = {dep: self._epochs.get(dep, 0) for dep in dependencies}
                entry = CacheEntry(key, dependencies, epochs)
                self._entries[key] = entry
                is_owner = True
            else:
                self.hits += 1
                is_owner = False

        if not is_owner:
            if entry.state == VariantState.ready:
                return entry.value
            elif entry.state == VariantState.failed:
                raise entry.error
            else:
                # Pending: wait for the resolution in flight
                return entry.future.result()

        logger.debug(f"{self.name} cache miss for {key!r}")
        try:
            value = builder()
        except Exception as err:
            value, error = None, err
        else:
            error = None
        return self._finish(entry, value, error)

    def _finish(self, entry, value, error):
        with self._lock:
            is_stale = any(
                self._epochs.get(dep, 0) != epoch for dep, epoch in entry.epochs.items()
            )
            if is_stale:
                if self._entries.get(entry.key) is entry:
                    del self._entries[entry.key]
                entry.state = VariantState.absent
                error = StaleVariantError(
                    f"A template of {entry.key!r} was reloaded while it was being resolved"
                )
            elif error is not None:
                entry.error = error
                entry.state = VariantState.failed
            else:
                entry.value = value
                entry.state = VariantState.ready

        if error is not None:
            if is_stale:
                logger.info(f"Discarded stale resolution for {entry.key!r}")
            entry.future.set_exception(error)
            raise error
        entry.future.set_result(value)
        return value

    def retry(self, key):
        """Remove a failed entry, so the next request resolves it again.

        Returns True if the entry was failed and has been removed.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.state == VariantState.failed:
                del self._entries[key]
                return True
        return False

    def discard(self, key):
        """Remove a ready or failed entry. Returns True if an entry was removed."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.state != VariantState.pending:
                del self._entries[key]
                return True
        return False

    def invalidate(self, template_id):
        """Invalidate all entries that depend on the given template.

        Ready and failed entries go back to absent. Resolutions in flight are
        marked stale: their result will not be stored, and their observers
        get StaleVariantError. Returns the number of entries removed.
        """
        with self._lock:
            self._epochs[template_id] = self._epochs.get(template_id, 0) + 1
            keys = [
                key
                for key, entry in self._entries.items()
                if template_id in entry.dependencies
            ]
            # Pending entries too: their resolution sees the new epoch and is not stored
            for key in keys:
                del self._entries[key]
        if keys:
            logger.debug(f"Invalidated {len(keys)} {self.name} entries for {template_id}")
        return len(keys)

    def clear(self):
        """Remove all entries. Resolutions in flight complete, but are not stored."""
        with self._lock:
            self._entries.clear()
