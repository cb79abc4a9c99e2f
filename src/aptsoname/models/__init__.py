"""Expose value models."""

from .contents import ContentsEntry, ContentsPath, File, NormalFile, PackageName, SharedLibrary
from .library import Lib
from .lookup import HardcodeTable, LookupTable, build_lookup_table

__all__ = [
    "ContentsEntry",
    "ContentsPath",
    "File",
    "HardcodeTable",
    "Lib",
    "LookupTable",
    "NormalFile",
    "PackageName",
    "SharedLibrary",
    "build_lookup_table",
]
