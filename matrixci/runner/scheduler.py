"""Stage scheduling for a single pipeline run.

Stages run in a fixed order with a barrier between each step::

    prechecks -> static check -> primary distro -> parallel distros

Prechecks are advisory. The static check always runs and stops the run when
it fails. The primary and parallel distro stages are skipped when the label
gate asked for it, and parallel distros only start after the primary one
passed. Parallel distros run concurrently and don't cancel each other.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from matrixci.const import STDERR_TAIL_LINES
from matrixci.matrix import TestMatrix
from matrixci.runner.actions import ActionRunner
from matrixci.runner.distro import run_tests
from matrixci.runner.run import PipelineRun
from matrixci.schemas import CommandResult, SkipDecision, StageResult, StageStatus
from matrixci.schemas.pipeline import CommandStageDef, PipelineDef
from matrixci.utils import tail

logger = logging.getLogger(__name__)

CommandRunner = Callable[[CommandStageDef], Awaitable[CommandResult]]


class StageScheduler:
    pipeline: PipelineDef
    matrix: TestMatrix
    skip_decision: SkipDecision
    repo: str
    actions: ActionRunner
    commands: CommandRunner
    skip_label: str

    def __init__(
        self,
        pipeline: PipelineDef,
        matrix: TestMatrix,
        skip_decision: SkipDecision,
        repo: str,
        actions: ActionRunner,
        commands: CommandRunner,
        skip_label: str,
    ):
        self.pipeline = pipeline
        self.matrix = matrix
        self.skip_decision = skip_decision
        self.repo = repo
        self.actions = actions
        self.commands = commands
        self.skip_label = skip_label

    async def run(self) -> PipelineRun:
        run = PipelineRun(self.pipeline, self.skip_decision, self.matrix, self.skip_label)

        for stage_def in self.pipeline.prechecks:
            stage = await self._run_command(run.stage(stage_def.name), stage_def)
            if stage.status == StageStatus.failure:
                logger.warning(f'Precheck {stage.name} failed, continuing')

        static = await self._run_command(
            run.stage(self.pipeline.static_check.name), self.pipeline.static_check
        )
        if static.status == StageStatus.failure:
            logger.error(f'Static check {static.name} failed, stopping the run')
            return run

        primary = run.stage(self.pipeline.primary)
        parallel = [run.stage(x) for x in self.pipeline.parallel]
        if self.skip_decision.skip:
            reason = f'pull request is labeled {self.skip_label!r}'
            for stage in (primary, *parallel):
                stage.status = StageStatus.skipped
                stage.reason = reason
            logger.info(f'Skipped {len(parallel) + 1} distro stages: {reason}')
            return run

        await self._run_distro(primary)
        if primary.status == StageStatus.failure:
            logger.error(f'Primary stage {primary.name} failed, stopping the run')
            return run

        if parallel:
            logger.info(f'Starting {", ".join(x.name for x in parallel)} in parallel')
            await asyncio.gather(*(self._run_distro(x) for x in parallel))
        return run

    async def _run_command(
        self, stage: StageResult, stage_def: CommandStageDef
    ) -> StageResult:
        stage.status = StageStatus.running
        logger.info(f'Running {stage.role.value} {stage.name}')
        try:
            result = await self.commands(stage_def)
        except Exception as e:
            logger.exception(f'{stage.name} crashed')
            stage.status = StageStatus.failure
            stage.reason = f'internal error: {e!r}'
            return stage
        if result.exit_code:
            stage.status = StageStatus.failure
            stage.reason = f'exited with code {result.exit_code}'
            if stderr := tail(result.stderr, STDERR_TAIL_LINES):
                stage.reason += '\n' + stderr
        else:
            stage.status = StageStatus.success
        logger.info(f'{stage.name}: {stage.status.value}')
        return stage

    async def _run_distro(self, stage: StageResult):
        stage.status = StageStatus.running
        logger.info(f'Running {stage.role.value} distro stage {stage.name}')
        try:
            result = await run_tests(
                stage.name, self.repo, self.matrix, self.actions, role=stage.role
            )
        except Exception as e:
            # siblings in the parallel group keep running
            logger.exception(f'{stage.name} crashed')
            stage.status = StageStatus.failure
            stage.reason = f'internal error: {e!r}'
            return
        stage.status = result.status
        stage.reason = result.reason
        stage.substages = result.substages
        logger.info(f'{stage.name}: {stage.status.value}')
