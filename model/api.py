# model/api.py
from pydantic import BaseModel, Field


class BindRequest(BaseModel):
    requestId: str = Field(min_length=1)


class LogMessage(BaseModel):
    logMsg: str


class CompileResponse(BaseModel):
    success: bool = True
    requestId: str
    compiledJson: str
    proverToml: str


class ProofResponse(BaseModel):
    success: bool = True
    requestId: str
    proof: str  # base64
    vk: str  # base64
    verifier: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class ArchivePayload(BaseModel):
    filename: str
    content: bytes
