# core/extractor.py
import io
import logging
import os
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import List, Optional

from config.settings import settings
from core.entities import ExtractResult
from util.errors import ArchiveCorrupt, UnsafeArchiveEntry
from util.timing import timed

logger = logging.getLogger(__name__)


def common_root_prefix(names: List[str]) -> str:
    """
    Return "<root>/" when every file entry lives under the same top-level folder,
    else "". Directory entries ("x/") are ignored for the decision.
    """
    files = [n for n in names if not n.endswith("/")]
    if not files:
        return ""
    parts = files[0].split("/")
    if len(parts) < 2:
        return ""
    candidate = parts[0] + "/"
    if all(n.startswith(candidate) for n in files):
        return candidate
    return ""


def safe_target(workspace: str, relative: str) -> str:
    """
    Join `relative` onto `workspace` and refuse anything that lands outside it.
    `workspace` must already be absolute and normalized.
    """
    target = os.path.normpath(os.path.join(workspace, relative))
    try:
        inside = os.path.commonpath([workspace, target]) == workspace
    except ValueError:
        # mixed absolute/relative or different drives
        inside = False
    if not inside or target == workspace:
        raise UnsafeArchiveEntry(relative)
    return target

_COPY_CHUNK = 1 << 20


def extract_archive(data: bytes, workspace: Path, max_bytes: Optional[int] = None) -> ExtractResult:
    """
    Unpack a zip upload into `workspace` (created if absent).
    - Strips a single shared root folder.
    - Entries escaping the workspace, or failing to decompress, are skipped with a warning.
    - Raises ArchiveCorrupt if the archive itself cannot be read.
    - Raises ArchiveCorrupt once the unpacked size would pass `max_bytes`
      (MAX_EXTRACTED_MB by default).
    Blocking; callers on the event loop should use asyncio.to_thread.
    """
    root = os.path.normpath(os.path.abspath(workspace))
    os.makedirs(root, exist_ok=True)
    result = ExtractResult()
    budget = settings.MAX_EXTRACTED_MB * 1024 * 1024 if max_bytes is None else max_bytes
    total = 0

    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise ArchiveCorrupt(f"Uploaded file is not a readable zip archive: {e}") from e

    with zf, timed(logger, "zip.extract", entries=len(zf.infolist())):
        infos = zf.infolist()
        prefix = common_root_prefix([i.filename for i in infos])
        if prefix:
            logger.info("zip.strip_root prefix=%s", prefix)

        for info in infos:
            name = info.filename
            stripped = name[len(prefix):] if prefix and name.startswith(prefix) else name
            if not stripped or stripped == "/":
                continue
            try:
                target = safe_target(root, stripped)
                if info.is_dir():
                    os.makedirs(target, exist_ok=True)
                    continue
                total += info.file_size
                if total > budget:
                    logger.error("zip.extract.too_large entry=%r total=%d budget=%d", name, total, budget)
                    raise ArchiveCorrupt(
                        f"Uploaded archive unpacks to more than {budget // (1024 * 1024)}MB"
                    )
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out, _COPY_CHUNK)
                result.written.append(os.path.relpath(target, root))
            except (
                UnsafeArchiveEntry,
                OSError,
                EOFError,
                zipfile.BadZipFile,
                zlib.error,
                NotImplementedError,  # unsupported compression
                RuntimeError,  # encrypted entry
            ) as e:
                logger.warning("zip.entry.skipped entry=%r err=%s", name, e)
                result.skipped.append(name)

    logger.info(
        "zip.extract.summary written=%d skipped=%d",
        len(result.written),
        len(result.skipped),
    )
    return result
