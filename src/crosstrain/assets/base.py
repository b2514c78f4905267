"""
Common interface of the per-kind converters.

Discovery and the watch coordinator are written once against
AssetConverter; each asset kind supplies its own reload() and, when its
files do not live in a ``<root>/<kind>/`` subtree, its own watch targets.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..config.schema import CrosstrainConfig
from .discovery import AssetKind, AssetRoots, kind_directories

if TYPE_CHECKING:
    from ..core.state import PluginState


@dataclass(frozen=True)
class WatchTarget:
    """A directory to observe and whether to descend into it."""

    path: Path
    recursive: bool = True


def is_within(path: Path, directory: Path) -> bool:
    """True when ``path`` is ``directory`` or lies below it."""
    try:
        path.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True


class AssetConverter(ABC):
    """One asset kind's discover -> convert -> publish pipeline.

    reload() must be all-or-nothing: build the complete new value first,
    then publish it with a single assignment on the state. If it raises,
    the state keeps its previous value.
    """

    kind: AssetKind

    def enabled(self, config: CrosstrainConfig) -> bool:
        return bool(getattr(config.loaders, self.kind.value))

    @abstractmethod
    async def reload(self, state: "PluginState") -> int:
        """Run the full pipeline for this kind and publish the result.

        Returns:
            Number of assets converted.
        """

    def watch_targets(self, roots: AssetRoots) -> list[WatchTarget]:
        """Existing directories to observe for this kind."""
        return [
            WatchTarget(path=directory, recursive=True)
            for _, directory in kind_directories(self.kind, roots)
            if directory.is_dir()
        ]

    def owns(self, path: Path, roots: AssetRoots) -> bool:
        """True when a change at ``path`` affects this kind."""
        return any(is_within(path, directory) for _, directory in kind_directories(self.kind, roots))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(kind='{self.kind.value}')>"
