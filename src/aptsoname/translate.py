"""Translate shared library names into conventional Debian package names.

A library ``libfoo`` with soname version ``1.2.3`` is conventionally shipped as
``libfoo1`` (runtime) and ``libfoo-dev`` (development headers). When the base
name already ends in a digit the version is separated by a hyphen, so
``libiso9660.so.11`` becomes ``libiso9660-11``.
"""

from collections.abc import Sequence

DEV_SUFFIX = "-dev"


def normalize_lib_name(name: str) -> str:
    """Lowercase ``name`` and replace underscores with hyphens."""
    return name.replace("_", "-").lower()


def translate_lib_name(name: str, sover: Sequence[int]) -> str:
    """Return the runtime package name for a normalized library name.

    Examples:
        >>> translate_lib_name("libadwaitaqt", (1, 4, 0))
        'libadwaitaqt1'
        >>> translate_lib_name("libiso9660", (11, 0, 0))
        'libiso9660-11'
        >>> translate_lib_name("libnss3", ())
        'libnss3'
    """
    if not sover:
        return name
    if name[-1:].isdigit():
        return f"{name}-{sover[0]}"
    return f"{name}{sover[0]}"


def translate_dev_name(name: str) -> str:
    """Return the development package name for a normalized library name."""
    return name + DEV_SUFFIX
