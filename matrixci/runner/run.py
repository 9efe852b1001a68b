from matrixci.matrix import TestMatrix
from matrixci.schemas import RunOutcome, SkipDecision, StageResult, StageRole, StageStatus
from matrixci.schemas.pipeline import PipelineDef


class PipelineRun:
    skip_decision: SkipDecision
    matrix: TestMatrix
    stages: list[StageResult]
    skip_label: str

    def __init__(
        self,
        pipeline: PipelineDef,
        skip_decision: SkipDecision,
        matrix: TestMatrix,
        skip_label: str,
    ):
        self.skip_decision = skip_decision
        self.matrix = matrix
        self.skip_label = skip_label
        self.stages = [
            *(StageResult(name=x.name, role=StageRole.precheck) for x in pipeline.prechecks),
            StageResult(name=pipeline.static_check.name, role=StageRole.static_check),
            StageResult(name=pipeline.primary, role=StageRole.primary),
            *(StageResult(name=x, role=StageRole.parallel) for x in pipeline.parallel),
        ]

    def stage(self, name: str) -> StageResult:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def by_role(self, role: StageRole) -> list[StageResult]:
        return [x for x in self.stages if x.role == role]

    @property
    def failed(self) -> list[StageResult]:
        return [x for x in self.stages if x.status == StageStatus.failure]

    @property
    def outcome(self) -> RunOutcome:
        # precheck failures are advisory and never fail the run
        if any(x.role != StageRole.precheck for x in self.failed):
            return RunOutcome.failure
        if self.skip_decision.skip:
            return RunOutcome.skipped_early
        return RunOutcome.success

    def report(self) -> str:
        outcome = self.outcome
        lines = [f'Outcome: {outcome.value}']
        if outcome == RunOutcome.skipped_early:
            lines.append(
                f'Distro tests were skipped: the pull request is labeled {self.skip_label!r}'
            )
        elif not self.skip_decision.checked:
            lines.append(f'The {self.skip_label!r} label was not checked')
        lines.append('')
        for stage in self.stages:
            line = f'[{stage.status.value}] {stage.name} ({stage.role.value})'
            if stage.reason and stage.status != StageStatus.success:
                line += f': {stage.reason.splitlines()[0]}'
            lines.append(line)
            for substage in stage.substages:
                lines.append(f'    [{substage.status.value}] {substage.name}')
        for stage in self.failed:
            lines.extend(('', f'{stage.name} failed:', stage.reason or 'unknown reason'))
        return '\n'.join(lines)
