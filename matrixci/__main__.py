import sys

import asyncio
import logging
from pathlib import Path

from matrixci.config import config
from matrixci.exceptions import MatrixCIError
from matrixci.runner import Runner
from matrixci.schemas import RunOutcome

logger = logging.getLogger('matrixci')

USAGE = 'usage: python -m matrixci run [WORKDIR] | server'


def run(workdir: Path) -> int:
    runner = Runner.from_config(workdir, config)
    try:
        result = asyncio.run(runner.run())
    except MatrixCIError as e:
        logger.error(f'{type(e).__name__}: {e}')
        return 2
    print(result.report())
    return 1 if result.outcome == RunOutcome.failure else 0


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print(USAGE, file=sys.stderr)
        return 2
    if argv[1] == 'run' and len(argv) <= 3:
        return run(Path(argv[2] if len(argv) == 3 else '.'))
    elif argv[1] == 'server' and len(argv) == 2:
        import uvicorn

        from matrixci.web import app

        uvicorn.run(app, host=config.host, port=config.port)
        return 0
    print(USAGE, file=sys.stderr)
    return 2


if __name__ == '__main__':
    sys.exit(main(sys.argv))
