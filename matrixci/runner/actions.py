import logging
from pathlib import Path
from pydantic import BaseModel, ConfigDict
from string import Template
from typing import Protocol

from matrixci.const import STDERR_TAIL_LINES
from matrixci.exceptions import ActionInvocationError
from matrixci.schemas.pipeline import TestOption
from matrixci.utils import run_script, tail

logger = logging.getLogger(__name__)


class ActionContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo: str
    distro: str
    value: bool | str


class ActionRunner(Protocol):
    async def invoke(self, option: TestOption, context: ActionContext) -> None: ...


class ShellActionRunner:
    """Runs test actions as shell snippets taken from the pipeline's ``actions``.

    Templates may reference ``$repo``, ``$distro`` and ``$value``.
    """

    templates: dict[TestOption, str]
    workdir: Path

    def __init__(self, templates: dict[TestOption, str], workdir: Path):
        self.templates = templates
        self.workdir = workdir

    def render(self, option: TestOption, context: ActionContext) -> str:
        template = self.templates.get(option)
        if template is None:
            raise ActionInvocationError(
                option.value, 'enabled in the test matrix but no action is defined'
            )
        # other $names and ${names} are left for the shell
        return Template(template).safe_substitute(
            repo=context.repo, distro=context.distro, value=context.value
        )

    async def invoke(self, option: TestOption, context: ActionContext) -> None:
        script = self.render(option, context)
        result = await run_script(
            script,
            cwd=self.workdir,
            env={
                'MATRIXCI_REPO': context.repo,
                'MATRIXCI_DISTRO': context.distro,
                'MATRIXCI_OPTION': option.value,
            },
        )
        if result.stdout:
            logger.debug(f'{context.distro}/{option.value} stdout:\n{result.stdout}')
        if result.exit_code:
            raise ActionInvocationError(
                option.value,
                f'exited with code {result.exit_code}\n'
                + tail(result.stderr, STDERR_TAIL_LINES),
                exit_code=result.exit_code,
            )
