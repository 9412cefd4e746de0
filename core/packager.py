# core/packager.py
import base64
import io
import logging
import zipfile
from typing import Union

from core.entities import Artifact, ArtifactSet
from model.api import ArchivePayload, CompileResponse, ProofResponse
from model.job import Job, JobKind

logger = logging.getLogger(__name__)

ResponsePayload = Union[CompileResponse, ProofResponse, ArchivePayload]

_ARCHIVE_PREFIX = {
    JobKind.compile_with_profiling: "profile",
    JobKind.prove_with_verifier: "verifier",
}


def as_text(artifact: Artifact) -> str:
    return artifact.data.decode("utf-8", errors="replace")


def as_base64(artifact: Artifact) -> str:
    return base64.b64encode(artifact.data).decode("ascii")


def build_archive(artifacts: ArtifactSet) -> bytes:
    """Zip every artifact under its own `name`; names are used verbatim."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for artifact in artifacts:
            zf.writestr(artifact.name, artifact.data)
    return buf.getvalue()


def archive_filename(job: Job) -> str:
    return f"{_ARCHIVE_PREFIX.get(job.kind, 'artifacts')}_{job.request_id}.zip"


def package(job: Job, artifacts: ArtifactSet) -> ResponsePayload:
    """
    Fixed small text sets go inline as JSON; open-ended sets (profilers, Cairo files)
    go out as one zip.
    """
    if job.kind is JobKind.compile:
        return CompileResponse(
            requestId=job.request_id,
            compiledJson=as_text(artifacts.require("circuit")),
            proverToml=as_text(artifacts.require("prover")),
        )

    if job.kind is JobKind.prove:
        return ProofResponse(
            requestId=job.request_id,
            proof=as_base64(artifacts.require("proof")),
            vk=as_base64(artifacts.require("vk")),
            verifier=as_text(artifacts.require("solidity")),
        )

    content = build_archive(artifacts)
    logger.info(
        "package.zip job=%s files=%d bytes=%d", job.request_id, len(artifacts), len(content)
    )
    return ArchivePayload(filename=archive_filename(job), content=content)
