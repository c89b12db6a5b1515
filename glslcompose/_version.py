"""
Versioning for glslcompose. The version number is hard-coded, and bumped
before each release.
"""

__version__ = "0.1.0"

version_info = tuple(int(i) for i in __version__.split("."))
