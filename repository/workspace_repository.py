# repository/workspace_repository.py
import logging
import shutil
from pathlib import Path
from typing import Optional

from config.settings import settings
from util.errors import JobConflict

logger = logging.getLogger(__name__)


class WorkspaceRepository:
    """
    Flow:
    - One directory per job under UPLOAD_ROOT, keyed by requestId and owned by that job only.
    - create() refuses an existing directory instead of sharing it.
    - cleanup() always runs at the end of a job; failures are logged, never raised.
    - RETAIN_WORKSPACES keeps directories for post-mortem inspection (opt-in, all job kinds).
    """

    def __init__(self, root: Optional[Path] = None, retain: Optional[bool] = None) -> None:
        self._root = Path(root or settings.UPLOAD_ROOT).resolve()
        self._retain = settings.RETAIN_WORKSPACES if retain is None else retain

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, request_id: str) -> Path:
        return self._root / request_id

    def create(self, request_id: str) -> Path:
        path = self.path_for(request_id)
        self._root.mkdir(parents=True, exist_ok=True)
        try:
            path.mkdir()
        except FileExistsError:
            logger.warning("workspace.conflict job=%s", request_id)
            raise JobConflict()
        logger.info("workspace.create job=%s", request_id)
        return path

    def cleanup(self, path: Path) -> bool:
        """True when the directory is gone afterwards."""
        if self._retain:
            logger.info("workspace.retained path=%s", path)
            return False
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error("workspace.cleanup.error path=%s err=%s", path, e)
            return False
        logger.info("workspace.cleanup path=%s", path.name)
        return True
