"""Target group catalog for tempsweep."""

import json
import os
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from tempsweep.errors import CatalogError
from tempsweep.models import TargetGroup

# Stand-in for the current user's profile directory in catalog entries
USER_PROFILE_TOKEN = "%USERPROFILE%"

# Environment variable pointing at a replacement catalog file
PATHS_FILE_ENV = "TEMPSWEEP_PATHS"


def bundled_resource_name() -> str:
    """Name of the catalog shipped for this platform."""
    return "paths_windows.json" if os.name == "nt" else "paths_posix.json"


def expand_path(path: str, home: str | Path | None = None) -> str:
    """Replace the profile token, then expand ~ and environment variables."""
    profile = str(home) if home is not None else str(Path.home())
    path = path.replace(USER_PROFILE_TOKEN, profile)
    return os.path.expandvars(os.path.expanduser(path))


class TargetCatalog(BaseModel):
    """All target groups, in catalog order."""

    groups: list[TargetGroup] = Field(default_factory=list)
    source: str = Field("", description="Where the catalog was loaded from")

    @property
    def group_names(self) -> list[str]:
        return [g.name for g in self.groups]

    def get_group(self, name: str) -> TargetGroup | None:
        """Look up a group by name, ignoring case."""
        wanted = name.lower()
        for group in self.groups:
            if group.name.lower() == wanted:
                return group
        return None

    def resolve(self, name: str, home: str | Path | None = None) -> list[str]:
        """Expanded paths of one group; empty if the group is unknown."""
        group = self.get_group(name)
        if group is None:
            return []
        return [expand_path(p, home) for p in group.paths]

    def resolve_all(self, home: str | Path | None = None) -> list[str]:
        """Expanded paths of every group, concatenated in catalog order."""
        return [expand_path(p, home) for group in self.groups for p in group.paths]


def parse_catalog(text: str, source: str = "") -> TargetCatalog:
    """
    Parse catalog JSON: an object mapping group names to lists of paths.

    Raises:
        CatalogError: if the text is not valid JSON or has the wrong shape
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Invalid JSON in {source or 'catalog'}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogError(f"{source or 'Catalog'} must be a JSON object of group name -> paths")

    try:
        groups = [TargetGroup(name=name, paths=paths) for name, paths in data.items()]
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog entry in {source or 'catalog'}: {e}") from e

    return TargetCatalog(groups=groups, source=source)


def load_catalog(paths_file: str | Path | None = None) -> TargetCatalog:
    """
    Load the target catalog.

    Args:
        paths_file: Optional JSON file replacing the bundled catalog. Falls
            back to $TEMPSWEEP_PATHS, then to the resource shipped with the
            package.

    Returns:
        TargetCatalog

    Raises:
        CatalogError: if the catalog cannot be read or parsed
    """
    source = paths_file or os.environ.get(PATHS_FILE_ENV)

    if source:
        try:
            text = Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"Cannot read paths file {source}: {e}") from e
        return parse_catalog(text, str(source))

    name = bundled_resource_name()
    try:
        text = resources.files("tempsweep").joinpath(name).read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise CatalogError(f"Embedded resource not found: {name}") from e
    return parse_catalog(text, name)
