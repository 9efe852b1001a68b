from asyncio import create_subprocess_exec

import logging
import os
import shutil
from functools import cache
from pathlib import Path
from subprocess import DEVNULL, PIPE

from matrixci.const import ENV_PREFIX
from matrixci.schemas import CommandResult

logger = logging.getLogger(__name__)


@cache
def get_bin(name: str) -> str:
    abspath = shutil.which(name)
    if abspath is None:
        raise FileNotFoundError(f'{name} not found in PATH')
    return abspath


async def async_check_output(*args: str | Path, cwd: Path | str) -> str:
    logger.debug(f'Running {args}')
    p = await create_subprocess_exec(*args, cwd=cwd, stdin=DEVNULL, stdout=PIPE)
    stdout, _ = await p.communicate()
    if p.returncode:
        logger.error(f'Process exited with code {p.returncode}')
        raise ValueError(f'{args[0]} exited with code {p.returncode}')
    return stdout.decode()


async def run_script(
    script: str, *, cwd: Path | str, env: dict[str, str] | None = None
) -> CommandResult:
    # pipeline scripts come from the pull request and must not see server secrets
    full_env = {k: v for k, v in os.environ.items() if not k.startswith(ENV_PREFIX)}
    if env:
        full_env |= env
    logger.debug(f'Running script in {cwd}: {script!r}')
    p = await create_subprocess_exec(
        get_bin('bash'),
        '-c',
        'set -e\n' + script,
        cwd=cwd,
        stdin=DEVNULL,
        stdout=PIPE,
        stderr=PIPE,
        env=full_env,
    )
    stdout, stderr = await p.communicate()
    return CommandResult(
        exit_code=p.returncode,
        stdout=stdout.decode(errors='replace'),
        stderr=stderr.decode(errors='replace'),
    )


def tail(text: str, lines: int) -> str:
    return '\n'.join(text.rstrip().splitlines()[-lines:])
