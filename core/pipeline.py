# core/pipeline.py
import asyncio
import logging
import os
import shlex
import shutil
from pathlib import Path
from typing import AbstractSet, List, Optional, Set

from core.entities import Artifact, ArtifactSet
from core.layout import ProjectLayout, find_project_root
from core.log_broker import LogBroker, log_broker
from core.plans import ArtifactSpec, JobPlan, Stage, build_plan
from core.process_runner import Runner, run_process
from model.job import Job
from util.errors import ArtifactMissing, LaunchFailure, StageFailure, StageTimeout
from util.functions import first_line
from util.timing import timed

logger = logging.getLogger(__name__)

# Failures an optional stage may absorb. Anything else propagates.
_TOLERATED = (LaunchFailure, StageFailure, StageTimeout, ArtifactMissing)


def _clear(paths: List[Path]) -> None:
    """Empty the locations a stage writes to, so leftovers are never collected as its output."""
    for path in paths:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            continue
        logger.info("stage.outputs.cleared path=%s", path.name)


class PipelineRunner:
    """
    Drives one job: manifest discovery -> ordered stages -> artifact collection.
    Required stages short-circuit on failure; optional ones are logged and skipped.
    """

    def __init__(
        self, runner: Optional[Runner] = None, broker: Optional[LogBroker] = None
    ) -> None:
        self._broker = broker or log_broker
        self._runner = runner or self._default_runner

    async def _default_runner(self, program, args, cwd, request_id) -> None:
        await run_process(program, args, cwd, request_id, broker=self._broker)

    async def execute(self, job: Job, workspace: Path) -> ArtifactSet:
        rid = job.request_id
        layout = ProjectLayout(find_project_root(workspace))
        manifest_rel = layout.manifest_file.relative_to(workspace).as_posix()
        self._broker.relay(
            rid, f"[debug] Found {layout.manifest_file.name} at: {manifest_rel}"
        )
        logger.info("pipeline.root job=%s manifest=%s", rid, manifest_rel)

        plan = build_plan(job)
        with timed(logger, "pipeline.stages", job=rid, kind=job.kind.value):
            failed = await self.run_stages(plan, layout, rid)
        with timed(logger, "pipeline.collect", job=rid):
            return await self.collect(plan, layout, rid, skip=failed)

    async def run_stages(self, plan: JobPlan, layout: ProjectLayout, rid: str) -> Set[str]:
        """Returns the output keys of optional stages that failed."""
        failed: Set[str] = set()
        total = len(plan.stages)
        for step, stage in enumerate(plan.stages, start=1):
            logger.info(
                "stage.run job=%s step=%d/%d stage=%s critical=%s",
                rid,
                step,
                total,
                stage.name,
                stage.critical,
            )
            if stage.critical:
                await self._run_one(stage, layout, rid)
                continue
            try:
                await self._run_one(stage, layout, rid)
            except _TOLERATED as e:
                reason = first_line(str(e))
                logger.warning(
                    "stage.optional.failed job=%s stage=%s err=%s", rid, stage.name, reason
                )
                self._broker.relay(
                    rid, f"[warning] {stage.name} failed, continuing without it: {reason}"
                )
                if stage.produces:
                    failed.add(stage.produces)
        return failed

    async def _run_one(self, stage: Stage, layout: ProjectLayout, rid: str) -> None:
        if stage.announce:
            self._broker.relay(rid, stage.announce)
        owned = stage.owned_paths(layout)
        if owned:
            await asyncio.to_thread(_clear, owned)
        args = stage.resolve_args(layout)
        self._broker.relay(rid, "$ " + shlex.join([os.path.basename(stage.program), *args]))
        with timed(logger, "stage", job=rid, stage=stage.name):
            await self._runner(stage.program, args, layout.root, rid)
        if stage.done:
            self._broker.relay(rid, stage.done)

    async def collect(
        self,
        plan: JobPlan,
        layout: ProjectLayout,
        rid: str,
        skip: AbstractSet[str] = frozenset(),
    ) -> ArtifactSet:
        """
        Read every declared output into memory; must finish before the workspace goes away.
        Missing required output -> ArtifactMissing; missing optional output is omitted.
        Keys in `skip` belong to failed stages and are never read, even if files exist.
        """
        artifacts = ArtifactSet()
        for spec in plan.outputs:
            if spec.key in skip:
                logger.info("collect.skipped key=%s job=%s", spec.key, rid)
                continue
            for artifact in await self._read(spec, layout):
                artifacts.add(artifact)
            if spec.required and artifacts.first(spec.key) is None:
                raise ArtifactMissing(spec.description)
        logger.info("collect.ok job=%s files=%d", rid, len(artifacts))
        return artifacts

    @staticmethod
    async def _read(spec: ArtifactSpec, layout: ProjectLayout) -> list[Artifact]:
        out: list[Artifact] = []
        for name, path in spec.locate(layout):
            try:
                data = await asyncio.to_thread(path.read_bytes)
            except OSError as e:
                logger.warning("collect.read.error key=%s file=%s err=%s", spec.key, name, e)
                continue
            out.append(Artifact(key=spec.key, name=name, data=data))
        if not out and not spec.required:
            logger.info("collect.optional.absent key=%s", spec.key)
        return out
