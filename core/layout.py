# core/layout.py
"""
Filesystem contract between the pipeline and the external tools.

Tools write everything derived into `<root>/target`; the prover input lives at
`<root>/Prover.toml`; garaga scaffolds its Cairo project under `<root>/verifier`.
Discovery here is suffix based and independent of any real toolchain.
"""
import logging
import tomllib
from pathlib import Path
from typing import List, Optional, Tuple

from config.settings import settings
from util.errors import ManifestNotFound

logger = logging.getLogger(__name__)

TARGET_DIR = "target"
PROFILER_DIR = "profiler"
CAIRO_PROJECT = "verifier"


def find_project_root(workspace: Path, manifest: Optional[str] = None) -> Path:
    """
    Shallowest directory under `workspace` containing the manifest.
    Equal depth: lexicographic path order. No manifest: ManifestNotFound.
    """
    manifest = manifest or settings.MANIFEST_FILE_NAME
    hits = [p for p in workspace.rglob(manifest) if p.is_file()]
    if not hits:
        raise ManifestNotFound(manifest)
    hits.sort(key=lambda p: (len(p.relative_to(workspace).parts), p.as_posix()))
    if len(hits) > 1:
        logger.info(
            "layout.manifest.multiple count=%d chosen=%s",
            len(hits),
            hits[0].relative_to(workspace).as_posix(),
        )
    return hits[0].parent


class ProjectLayout:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def target(self) -> Path:
        return self.root / TARGET_DIR

    @property
    def manifest_file(self) -> Path:
        return self.root / settings.MANIFEST_FILE_NAME

    @property
    def prover_file(self) -> Path:
        return self.root / settings.PROVER_FILE_NAME

    @property
    def proof_file(self) -> Path:
        return self.target / "proof"

    @property
    def vk_file(self) -> Path:
        return self.target / "vk"

    @property
    def solidity_verifier(self) -> Path:
        return self.target / "Verifier.sol"

    def package_name(self) -> Optional[str]:
        try:
            data = tomllib.loads(self.manifest_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError):
            return None
        name = (data.get("package") or {}).get("name")
        return name if isinstance(name, str) and name else None

    def first_with_suffix(self, directory: Path, suffix: str) -> Optional[Path]:
        """
        Pick one file in `directory` ending with `suffix`.
        Rule: `<package name><suffix>` if present, else first by sorted name.
        More than one candidate is logged, never silently resolved.
        """
        if not directory.is_dir():
            return None
        candidates = sorted(
            (p for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix)),
            key=lambda p: p.name,
        )
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        pkg = self.package_name()
        preferred = next((p for p in candidates if pkg and p.name == pkg + suffix), None)
        chosen = preferred or candidates[0]
        logger.warning(
            "layout.ambiguous dir=%s suffix=%s candidates=%s chosen=%s",
            directory.name,
            suffix,
            ",".join(p.name for p in candidates),
            chosen.name,
        )
        return chosen

    def circuit_file(self) -> Optional[Path]:
        return self.first_with_suffix(self.target, ".json")

    def witness_file(self) -> Optional[Path]:
        return self.first_with_suffix(self.target, ".gz")

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def cairo_sources(self) -> List[Path]:
        src = self.root / CAIRO_PROJECT / "src"
        if not src.is_dir():
            return []
        return sorted(p for p in src.glob("*.cairo") if p.is_file())

    def profiler_dir(self, name: str) -> Path:
        return self.target / PROFILER_DIR / name

    def profiler_outputs(self, name: str) -> List[Tuple[str, Path]]:
        """(path relative to the profiler's output dir, absolute path) for every file produced."""
        base = self.profiler_dir(name)
        if not base.is_dir():
            return []
        return [
            (p.relative_to(base).as_posix(), p)
            for p in sorted(base.rglob("*"))
            if p.is_file()
        ]
