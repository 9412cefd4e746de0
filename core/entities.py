# core/entities.py
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from util.errors import ArtifactMissing


@dataclass
class ExtractResult:
    written: List[str] = field(default_factory=list)  # workspace-relative paths
    skipped: List[str] = field(default_factory=list)  # raw entry names


@dataclass(frozen=True)
class Artifact:
    """
    Bytes copied out of a workspace.
    `key` groups artifacts of one kind (e.g. "cairo"); `name` is the archive path.
    """

    key: str
    name: str
    data: bytes


@dataclass
class ArtifactSet:
    items: List[Artifact] = field(default_factory=list)

    def add(self, artifact: Artifact) -> None:
        self.items.append(artifact)

    def first(self, key: str) -> Optional[Artifact]:
        return next((a for a in self.items if a.key == key), None)

    def require(self, key: str) -> Artifact:
        found = self.first(key)
        if found is None:
            raise ArtifactMissing(key)
        return found

    def names(self) -> List[str]:
        return [a.name for a in self.items]

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
