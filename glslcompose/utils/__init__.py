"""
Utility functions for glslcompose.

.. currentmodule:: glslcompose.utils

.. autosummary::
    :toctree: utils/

    ReadOnlyDict
    enums

"""

import os
import logging

from . import enums  # noqa: F401


logger = logging.getLogger("glslcompose")


def _set_log_level():
    # Set default level
    logger.setLevel(logging.WARN)
    # Set user-specified level
    level = os.getenv("GLSLCOMPOSE_LOG_LEVEL", "")
    if level:
        try:
            if level.isnumeric():
                logger.setLevel(int(level))
            else:
                logger.setLevel(level.upper())
        except Exception:
            logger.warning(f"Invalid glslcompose log level: {level}")


_set_log_level()


def env_flag(name, default="0"):
    """Get whether the environment variable with the given name is set to a truthy value."""
    return os.getenv(name, default).strip().lower() not in ("", "false", "0", "no")


class ReadOnlyDict(dict):
    """A read-only dict, for storing structured data that can be hashed."""

    __slots__ = ["_hash"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Calculate hash in a way that requires any value to also be hashable
        parts = []
        for k in sorted(self.keys()):
            v = self[k]
            parts.append(str(hash(k)))
            parts.append(str(hash(v)))
        self._hash = hash(" ".join(parts))

    def __setitem__(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def __delitem__(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def clear(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def pop(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def popitem(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def setdefault(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def update(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def __ior__(self, *args, **kwargs):
        raise TypeError(f"Cannot modify {self.__class__.__name__}")

    def __hash__(self):
        return self._hash
