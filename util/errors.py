# util/errors.py
from fastapi import HTTPException, status
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)


class UploadMissing(AppError):
    def __init__(self) -> None:
        super().__init__(*ErrorMessage.NO_FILE.value)


class PayloadTooLarge(AppError):
    def __init__(self, max_mb: int) -> None:
        super().__init__(
            f"Uploaded file is too large (max {max_mb}MB).",
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )


class InvalidRequestId(AppError):
    def __init__(self) -> None:
        super().__init__(*ErrorMessage.INVALID_REQUEST_ID.value)


class JobConflict(AppError):
    def __init__(self) -> None:
        super().__init__(*ErrorMessage.JOB_CONFLICT.value)


class ClientDisconnected(AppError):
    def __init__(self) -> None:
        super().__init__(*ErrorMessage.CLIENT_DISCONNECTED.value)


class JobFailed(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorMessage.INTERNAL_ERROR.value.http_status)


# ---------------- Pipeline errors (never leave the job boundary as-is) ----------------


class PipelineError(Exception):
    """Base for everything that can fail a job between extraction and packaging."""


class ArchiveCorrupt(PipelineError):
    pass


class UnsafeArchiveEntry(PipelineError):
    def __init__(self, entry: str) -> None:
        super().__init__(f"Unsafe file path detected: {entry}")
        self.entry = entry


class ManifestNotFound(PipelineError):
    def __init__(self, manifest: str) -> None:
        super().__init__(f"{manifest} not found in uploaded zip")
        self.manifest = manifest


class LaunchFailure(PipelineError):
    def __init__(self, program: str, reason: str) -> None:
        super().__init__(f"[{program}] could not be started: {reason}")
        self.program = program


class StageFailure(PipelineError):
    def __init__(self, program: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"[{program}] Failed with code {exit_code}\n{stderr}")
        self.program = program
        self.exit_code = exit_code
        self.stderr = stderr


class StageTimeout(PipelineError):
    def __init__(self, program: str, timeout: float) -> None:
        super().__init__(f"[{program}] Timed out after {timeout:g}s")
        self.program = program
        self.timeout = timeout


class ArtifactMissing(PipelineError):
    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not found")
        self.what = what
