"""Value types for parsed Contents index entries."""

from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, computed_field, model_validator

SONAME_SEPARATOR = ".so"
SOVER_SEPARATOR = "."
PATH_SEPARATOR = "/"
SECTION_SEPARATOR = "/"

Sover: TypeAlias = tuple[NonNegativeInt, ...]


class SharedLibrary(BaseModel):
    """A shared library file, e.g. ``libnuma.so.1.1.4``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["shared_library"] = "shared_library"
    name: str
    sover: Sover = ()

    def __str__(self) -> str:
        return self.name + SONAME_SEPARATOR + "".join(f"{SOVER_SEPARATOR}{n}" for n in self.sover)


class NormalFile(BaseModel):
    """Any file that is not recognised as a shared library."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["normal"] = "normal"
    name: str

    def __str__(self) -> str:
        return self.name


File = Annotated[SharedLibrary | NormalFile, Field(discriminator="kind")]


class ContentsPath(BaseModel):
    """Path column of a Contents line, split into directory segments and the file."""

    model_config = ConfigDict(frozen=True)

    parent: tuple[str, ...] = ()
    file: File

    @property
    def parent_path(self) -> str:
        return PATH_SEPARATOR.join(self.parent)

    def __str__(self) -> str:
        return PATH_SEPARATOR.join((*self.parent, str(self.file)))


class PackageName(BaseModel):
    """One package reference from the package-list column, ``[area/][section/]name``."""

    model_config = ConfigDict(frozen=True)

    area: str | None = None
    section: str | None = None
    name: str

    @model_validator(mode="after")
    def _area_requires_section(self) -> "PackageName":
        if self.area is not None and self.section is None:
            raise ValueError(f"package {self.name!r} has an area ({self.area!r}) but no section")
        return self

    def __str__(self) -> str:
        return SECTION_SEPARATOR.join(part for part in (self.area, self.section, self.name) if part is not None)


class ContentsEntry(BaseModel):
    """A single parsed Contents line."""

    model_config = ConfigDict(frozen=True)

    path: ContentsPath
    packages: tuple[PackageName, ...]

    @computed_field
    @property
    def is_shared_library(self) -> bool:
        return isinstance(self.path.file, SharedLibrary)

    @property
    def package_names(self) -> tuple[str, ...]:
        """Bare package names, without area or section."""
        return tuple(package.name for package in self.packages)
