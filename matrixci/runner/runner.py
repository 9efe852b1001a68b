import logging
import yaml
from pathlib import Path
from pydantic import ValidationError
from yaml import YAMLError

from matrixci import gate, matrix
from matrixci.config import Config
from matrixci.const import GH_API_BASE, PIPELINE_FILE, SKIP_LABEL
from matrixci.exceptions import ConfigurationError
from matrixci.gate import FetchLabels, GitHubLabelSource
from matrixci.matrix import TestMatrix
from matrixci.runner.actions import ActionRunner, ShellActionRunner
from matrixci.runner.run import PipelineRun
from matrixci.runner.scheduler import StageScheduler
from matrixci.schemas import CommandResult, SkipDecision
from matrixci.schemas.pipeline import CommandStageDef, PipelineDef
from matrixci.utils import run_script

logger = logging.getLogger(__name__)


class Runner:
    workdir: Path
    pipeline_file: str
    repo: str | None
    pull_id: str | None
    token: str | None
    skip_label: str
    api_base: str
    pipeline: PipelineDef | None
    actions: ActionRunner | None
    fetch_labels: FetchLabels | None

    def __init__(
        self,
        workdir: Path,
        *,
        pipeline_file: str = PIPELINE_FILE,
        repo: str | None = None,
        pull_id: str | None = None,
        token: str | None = None,
        skip_label: str = SKIP_LABEL,
        api_base: str = GH_API_BASE,
        actions: ActionRunner | None = None,
        fetch_labels: FetchLabels | None = None,
    ):
        self.workdir = workdir
        self.pipeline_file = pipeline_file
        self.repo = repo
        self.pull_id = pull_id
        self.token = token
        self.skip_label = skip_label
        self.api_base = api_base
        self.pipeline = None
        self.actions = actions
        self.fetch_labels = fetch_labels

    @classmethod
    def from_config(cls, workdir: Path, config: Config, **kwargs) -> 'Runner':
        token = config.github_token.get_secret_value() if config.has_credentials else None
        kwargs = {
            'pipeline_file': config.pipeline_file,
            'repo': config.repo,
            'pull_id': config.pull_id,
            'token': token,
            'skip_label': config.skip_label,
            'api_base': config.github_api_base,
        } | kwargs
        return cls(workdir, **kwargs)

    def load_pipeline(self) -> PipelineDef:
        file = self.workdir / self.pipeline_file
        if not file.is_file():
            raise ConfigurationError(f'{self.pipeline_file} not found in {self.workdir}')
        try:
            self.pipeline = PipelineDef.model_validate(yaml.safe_load(file.read_text()))
        except (YAMLError, ValidationError) as e:
            raise ConfigurationError(str(e))
        return self.pipeline

    def load_matrix(self) -> TestMatrix:
        return matrix.load_file(self.workdir / self.pipeline.matrix_file)

    async def evaluate_gate(self) -> SkipDecision:
        if self.fetch_labels is not None:
            return await gate.evaluate(
                bool(self.token),
                self.repo,
                self.pull_id,
                self.fetch_labels,
                skip_label=self.skip_label,
            )
        async with GitHubLabelSource(self.token or '', self.api_base) as source:
            return await gate.evaluate(
                bool(self.token),
                self.repo,
                self.pull_id,
                source,
                skip_label=self.skip_label,
            )

    async def run_command(self, stage: CommandStageDef) -> CommandResult:
        return await run_script(stage.run, cwd=self.workdir)

    async def run(self) -> PipelineRun:
        self.load_pipeline()
        test_matrix = self.load_matrix()
        skip_decision = await self.evaluate_gate()

        repo = self.repo or self.workdir.absolute().name
        if self.repo is None:
            logger.warning(f'Repository not set, using {repo!r} for test matrix lookups')

        scheduler = StageScheduler(
            self.pipeline,
            test_matrix,
            skip_decision,
            repo,
            self.actions or ShellActionRunner(dict(self.pipeline.actions), self.workdir),
            self.run_command,
            self.skip_label,
        )
        run = await scheduler.run()
        logger.info(f'Run finished: {run.outcome.value}')
        return run
