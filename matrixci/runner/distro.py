import logging

from matrixci.exceptions import ActionInvocationError
from matrixci.matrix import TestMatrix
from matrixci.runner.actions import ActionContext, ActionRunner
from matrixci.schemas import StageResult, StageRole, StageStatus
from matrixci.schemas.pipeline import TestOption

logger = logging.getLogger(__name__)


async def run_tests(
    distro: str,
    repo: str,
    matrix: TestMatrix,
    actions: ActionRunner,
    *,
    role: StageRole = StageRole.parallel,
) -> StageResult:
    result = StageResult(name=distro, role=role, status=StageStatus.running)
    for key, value in matrix.options_for(repo, distro).items():
        option = TestOption.parse(key)
        if option is None:
            logger.warning(f'Unrecognized test option {key!r} for {repo} on {distro}')
            continue
        if not value:
            continue

        substage = StageResult(
            name=f'{distro}/{option.value}', role=role, status=StageStatus.running
        )
        result.substages.append(substage)
        logger.info(f'Running {substage.name} tests for {repo}')
        try:
            await actions.invoke(
                option, ActionContext(repo=repo, distro=distro, value=value)
            )
        except ActionInvocationError as e:
            logger.error(f'{substage.name} failed: {e}')
            substage.status = StageStatus.failure
            substage.reason = str(e)
            result.status = StageStatus.failure
            result.reason = f'{substage.name} failed: {e}'
            return result
        substage.status = StageStatus.success

    if not result.substages:
        logger.info(f'No tests enabled for {repo} on {distro}')
    result.status = StageStatus.success
    return result
