# controller/job_controller.py
from fastapi import APIRouter, Depends, Request, UploadFile
from fastapi.responses import Response
from model.api import ArchivePayload, CompileResponse, ErrorResponse, ProofResponse
from model.job import Job, JobKind, JobOptions
from service.job_service import JobService
from util.constants import InternalURIs
from controller.controller_dependencies import (
    enforce_max_upload_size,
    get_job_service,
    job_options,
    rate_limits,
    resolve_request_id,
)

job_router = APIRouter(dependencies=rate_limits())

_ERRORS = {
    400: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}
_ZIP = {200: {"content": {"application/zip": {}}}, **_ERRORS}


def _zip_response(payload: ArchivePayload) -> Response:
    return Response(
        content=payload.content,
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename={payload.filename}"},
    )


@job_router.post(
    InternalURIs.COMPILE, response_model=CompileResponse, responses=_ERRORS
)
async def compile_project(
    request: Request,
    file: UploadFile = Depends(enforce_max_upload_size),
    request_id: str = Depends(resolve_request_id),
    service: JobService = Depends(get_job_service),
):
    job = Job(request_id=request_id, kind=JobKind.compile)
    return await service.run(job, file, request)


@job_router.post(
    InternalURIs.COMPILE_WITH_PROFILER, response_class=Response, responses=_ZIP
)
async def compile_with_profiler(
    request: Request,
    file: UploadFile = Depends(enforce_max_upload_size),
    request_id: str = Depends(resolve_request_id),
    options: JobOptions = Depends(job_options),
    service: JobService = Depends(get_job_service),
) -> Response:
    job = Job(
        request_id=request_id, kind=JobKind.compile_with_profiling, options=options
    )
    return _zip_response(await service.run(job, file, request))


@job_router.post(
    InternalURIs.GENERATE_PROOF, response_model=ProofResponse, responses=_ERRORS
)
async def generate_proof(
    request: Request,
    file: UploadFile = Depends(enforce_max_upload_size),
    request_id: str = Depends(resolve_request_id),
    service: JobService = Depends(get_job_service),
):
    job = Job(request_id=request_id, kind=JobKind.prove)
    return await service.run(job, file, request)


@job_router.post(
    InternalURIs.GENERATE_PROOF_WITH_VERIFIER, response_class=Response, responses=_ZIP
)
async def generate_proof_with_verifier(
    request: Request,
    file: UploadFile = Depends(enforce_max_upload_size),
    request_id: str = Depends(resolve_request_id),
    options: JobOptions = Depends(job_options),
    service: JobService = Depends(get_job_service),
) -> Response:
    job = Job(request_id=request_id, kind=JobKind.prove_with_verifier, options=options)
    return _zip_response(await service.run(job, file, request))
