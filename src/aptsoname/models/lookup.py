"""Translation tables between native library names and package names."""

import tomllib
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, Field

from aptsoname.models.library import Lib


class HardcodeTable(BaseModel):
    """Manually maintained mapping of package name -> native names it provides.

    Loaded from TOML::

        [entries]
        zlib = ["zlib1g", "zlib1g-dev"]
    """

    entries: dict[str, list[str]] = Field(default_factory=dict)

    @classmethod
    def from_toml(cls, path: Path) -> "HardcodeTable":
        with path.open("rb") as f:
            return cls.model_validate(tomllib.load(f))


class LookupTable(BaseModel):
    """Mapping of a translated (Debian-style) name -> native library or package name."""

    entries: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_hardcode_table(cls, table: HardcodeTable) -> "LookupTable":
        entries = {}
        for key, names in table.entries.items():
            for name in names:
                entries[name] = key
        return cls(entries=entries)

    @classmethod
    def from_libs(cls, libs: Iterable[Lib]) -> "LookupTable":
        entries = {}
        for lib in libs:
            for translated_name in (lib.translated_lib_name, lib.translated_dev_name):
                entries[translated_name] = lib.library_name
        return cls(entries=entries)

    def merge(self, other: "LookupTable") -> None:
        """Merge ``other`` into this table; entries from ``other`` win on conflict."""
        self.entries.update(other.entries)

    def append_hardcode_table(self, table: HardcodeTable) -> None:
        self.merge(LookupTable.from_hardcode_table(table))

    def __getitem__(self, key: str) -> str:
        return self.entries[key]

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __len__(self) -> int:
        return len(self.entries)


def build_lookup_table(libs: Iterable[Lib], hardcoded: Iterable[HardcodeTable] = ()) -> LookupTable:
    """Build a lookup table from reduced libraries, then overlay hardcoded tables."""
    table = LookupTable.from_libs(libs)
    for hardcode in hardcoded:
        table.append_hardcode_table(hardcode)
    return table
