# core/plans.py
"""
Per job kind: an ordered list of stages plus the artifacts to collect afterwards.
The pipeline loop in core/pipeline.py is generic; everything kind-specific lives here.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from config.settings import settings
from core.layout import CAIRO_PROJECT, ProjectLayout
from model.job import Job, JobKind, Profiler
from util.constants import ArchiveNames
from util.errors import ArtifactMissing

ArgsBuilder = Callable[[ProjectLayout], List[str]]
PathsBuilder = Callable[[ProjectLayout], List[Path]]
Locator = Callable[[ProjectLayout], List[Tuple[str, Path]]]


@dataclass(frozen=True)
class Stage:
    name: str
    program: str
    args: Union[Sequence[str], ArgsBuilder] = ()
    critical: bool = True
    announce: Optional[str] = None
    done: Optional[str] = None
    # Key of the ArtifactSpec whose files only this stage may produce.
    produces: Optional[str] = None
    # Output locations emptied before the stage runs.
    owns: Optional[PathsBuilder] = None

    def resolve_args(self, layout: ProjectLayout) -> List[str]:
        if callable(self.args):
            return list(self.args(layout))
        return list(self.args)

    def owned_paths(self, layout: ProjectLayout) -> List[Path]:
        return list(self.owns(layout)) if self.owns else []


@dataclass(frozen=True)
class ArtifactSpec:
    key: str
    description: str
    locate: Locator
    required: bool = True


@dataclass
class JobPlan:
    kind: JobKind
    stages: List[Stage] = field(default_factory=list)
    outputs: List[ArtifactSpec] = field(default_factory=list)


# ---------------- Arg builders ----------------


def _circuit(layout: ProjectLayout) -> str:
    found = layout.circuit_file()
    if found is None:
        raise ArtifactMissing(f"Compiled circuit JSON in {layout.relative(layout.target)}/")
    return layout.relative(found)


def _witness(layout: ProjectLayout) -> str:
    found = layout.witness_file()
    if found is None:
        raise ArtifactMissing(f"Witness file (.gz) in {layout.relative(layout.target)}/")
    return layout.relative(found)


def _prove_args(layout: ProjectLayout) -> List[str]:
    return ["prove", "-b", _circuit(layout), "-w", _witness(layout), "-o", "target"]


def _write_vk_args(layout: ProjectLayout) -> List[str]:
    return ["write_vk", "-b", _circuit(layout), "-o", "target", "--oracle_hash", "keccak"]


def _profiler_args(profiler: Profiler) -> ArgsBuilder:
    def build(layout: ProjectLayout) -> List[str]:
        out = layout.relative(layout.profiler_dir(profiler.value))
        args = [profiler.value, "--artifact-path", _circuit(layout), "--output", out]
        if profiler is Profiler.gates:
            args += ["--backend-path", settings.BB_BIN]
        if profiler is Profiler.execution_opcodes:
            args += ["--prover-toml-path", layout.relative(layout.prover_file)]
        return args

    return build


# ---------------- Locators ----------------


def _single(
    name: Union[str, Callable[[Path], str]],
    pick: Callable[[ProjectLayout], Optional[Path]],
) -> Locator:
    def locate(layout: ProjectLayout) -> List[Tuple[str, Path]]:
        path = pick(layout)
        if path is None or not path.is_file():
            return []
        return [(name(path) if callable(name) else name, path)]

    return locate


def _cairo(layout: ProjectLayout) -> List[Tuple[str, Path]]:
    return [(f"{ArchiveNames.CAIRO_DIR}/{p.name}", p) for p in layout.cairo_sources()]


def _profiler_files(profiler: Profiler) -> Locator:
    def locate(layout: ProjectLayout) -> List[Tuple[str, Path]]:
        prefix = f"{ArchiveNames.PROFILER_DIR}/{profiler.value}"
        return [(f"{prefix}/{rel}", p) for rel, p in layout.profiler_outputs(profiler.value)]

    return locate


# ---------------- Plans ----------------

_CAIRO_KEY = "cairo"


def _profiler_key(profiler: Profiler) -> str:
    return f"profiler:{profiler.value}"



def _compile_stages() -> List[Stage]:
    return [
        Stage("nargo compile", settings.NARGO_BIN, ["compile"]),
        # check also writes a Prover.toml template when the upload has none
        Stage("nargo check", settings.NARGO_BIN, ["check"]),
    ]


def _prove_stages() -> List[Stage]:
    return [
        Stage("nargo execute", settings.NARGO_BIN, ["execute"]),
        Stage("bb prove", settings.BB_BIN, _prove_args),
        Stage("bb write_vk", settings.BB_BIN, _write_vk_args),
        Stage(
            "bb write_solidity_verifier",
            settings.BB_BIN,
            ["write_solidity_verifier", "-k", "target/vk", "-o", "target/Verifier.sol"],
        ),
    ]


def _profiler_stages(profilers: Sequence[Profiler]) -> List[Stage]:
    return [
        Stage(
            f"noir-profiler {p.value}",
            settings.PROFILER_BIN,
            _profiler_args(p),
            critical=False,
            announce=f"Running {p.value} profiler...",
            produces=_profiler_key(p),
            owns=lambda lay, name=p.value: [lay.profiler_dir(name)],
        )
        for p in profilers
    ]


def _starknet_stage() -> Stage:
    return Stage(
        "garaga gen",
        settings.GARAGA_BIN,
        [
            "gen",
            "--system",
            "ultra_keccak_honk",
            "--vk",
            "target/vk",
            "--project-name",
            CAIRO_PROJECT,
        ],
        critical=False,
        announce="Generating Starknet Cairo verifier...",
        done="Starknet verifier generated.",
        produces=_CAIRO_KEY,
        owns=lambda lay: [lay.root / CAIRO_PROJECT],
    )


def _circuit_output() -> ArtifactSpec:
    return ArtifactSpec(
        "circuit",
        "Compiled JSON file",
        _single(
            lambda p: f"{ArchiveNames.CIRCUIT_DIR}/{p.name}",
            lambda lay: lay.circuit_file(),
        ),
    )


def _prover_output() -> ArtifactSpec:
    return ArtifactSpec(
        "prover",
        settings.PROVER_FILE_NAME,
        _single(ArchiveNames.PROVER, lambda lay: lay.prover_file),
    )


def _proof_outputs() -> List[ArtifactSpec]:
    return [
        ArtifactSpec(
            "proof", "target/proof", _single(ArchiveNames.PROOF, lambda lay: lay.proof_file)
        ),
        ArtifactSpec("vk", "target/vk", _single(ArchiveNames.VK, lambda lay: lay.vk_file)),
        ArtifactSpec(
            "solidity",
            "target/Verifier.sol",
            _single(ArchiveNames.SOLIDITY_VERIFIER, lambda lay: lay.solidity_verifier),
        ),
    ]


def _profiler_outputs(profilers: Sequence[Profiler]) -> List[ArtifactSpec]:
    return [
        ArtifactSpec(
            _profiler_key(p),
            f"{p.value} profiler output",
            _profiler_files(p),
            required=False,
        )
        for p in profilers
    ]


def build_plan(job: Job) -> JobPlan:
    opts = job.options
    kind = job.kind

    if kind is JobKind.compile:
        return JobPlan(kind, _compile_stages(), [_circuit_output(), _prover_output()])

    if kind is JobKind.compile_with_profiling:
        profilers = list(dict.fromkeys(opts.profilers)) or [Profiler.opcodes]
        return JobPlan(
            kind,
            _compile_stages() + _profiler_stages(profilers),
            [_circuit_output(), _prover_output()] + _profiler_outputs(profilers),
        )

    if kind is JobKind.prove:
        return JobPlan(kind, _prove_stages(), _proof_outputs())

    if kind is JobKind.prove_with_verifier:
        profilers = list(dict.fromkeys(opts.profilers))
        stages = _prove_stages() + _profiler_stages(profilers)
        outputs = _proof_outputs() + _profiler_outputs(profilers)
        if opts.include_starknet_verifier:
            stages.append(_starknet_stage())
            outputs.append(
                ArtifactSpec(_CAIRO_KEY, "Cairo verifier files", _cairo, required=False)
            )
        return JobPlan(kind, stages, outputs)

    raise ValueError(f"unknown job kind: {kind}")
