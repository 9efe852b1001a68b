from enum import Enum
from pydantic import BaseModel, ConfigDict, model_validator


class SkipDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    checked: bool
    skip: bool

    @model_validator(mode='after')
    def v_skip_implies_checked(self):
        if self.skip and not self.checked:
            raise ValueError('skip can only be set by a checked gate')
        return self


class StageRole(str, Enum):
    precheck = 'precheck'
    static_check = 'static_check'
    primary = 'primary'
    parallel = 'parallel'


class StageStatus(str, Enum):
    pending = 'pending'
    running = 'running'
    success = 'success'
    failure = 'failure'
    skipped = 'skipped'

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.success, StageStatus.failure, StageStatus.skipped)


class StageResult(BaseModel):
    name: str
    role: StageRole
    status: StageStatus = StageStatus.pending
    reason: str | None = None
    substages: list['StageResult'] = []


class RunOutcome(str, Enum):
    success = 'success'
    failure = 'failure'
    skipped_early = 'skipped_early'


class CommandResult(BaseModel):
    exit_code: int
    stdout: str
    stderr: str


class PullRequestInfo(BaseModel):
    repo_name: str
    clone_url: str
    head_sha: str
    pull_id: str
