# model/job.py
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, Field


class JobKind(str, Enum):
    compile = "compile"
    compile_with_profiling = "compile_with_profiling"
    prove = "prove"
    prove_with_verifier = "prove_with_verifier"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    JobKind.compile: "Compilation",
    JobKind.compile_with_profiling: "Profiling",
    JobKind.prove: "generate-proof",
    JobKind.prove_with_verifier: "generate-proof",
}


class Profiler(str, Enum):
    # value == noir-profiler subcommand
    opcodes = "opcodes"
    gates = "gates"
    execution_opcodes = "execution-opcodes"


class JobOptions(BaseModel):
    profilers: list[Profiler] = Field(default_factory=list)
    include_starknet_verifier: bool = False


class Job(BaseModel):
    request_id: str
    kind: JobKind
    options: JobOptions = Field(default_factory=JobOptions)
    workspace: Path | None = None
