"""Reduced shared library records."""

from pydantic import BaseModel, ConfigDict, computed_field, field_validator

from aptsoname.models.contents import Sover
from aptsoname.translate import normalize_lib_name, translate_dev_name, translate_lib_name


class Lib(BaseModel):
    """The most specific observation of one shared library in a Contents index."""

    model_config = ConfigDict(frozen=True)

    library_name: str
    sover: Sover = ()
    packages: tuple[str, ...] = ()

    @field_validator("library_name")
    @classmethod
    def _normalize(cls, value: str) -> str:
        if not value:
            raise ValueError("library name must not be empty")
        return normalize_lib_name(value)

    @computed_field
    @property
    def translated_lib_name(self) -> str:
        """Runtime package name, e.g. ``libnuma1``."""
        return translate_lib_name(self.library_name, self.sover)

    @computed_field
    @property
    def translated_dev_name(self) -> str:
        """Development package name, e.g. ``libnuma-dev``."""
        return translate_dev_name(self.library_name)

    @property
    def sover_str(self) -> str:
        return ".".join(str(n) for n in self.sover)
