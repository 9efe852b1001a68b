"""Shared fixtures and fakes for matrixci tests."""

from pathlib import Path

import pytest

from matrixci.exceptions import ActionInvocationError
from matrixci.matrix import TestMatrix
from matrixci.runner.actions import ActionContext
from matrixci.schemas import CommandResult
from matrixci.schemas.pipeline import CommandStageDef, PipelineDef, TestOption

REPO = 'example/distro-tools'

PIPELINE_YAML = """\
prechecks:
  - name: yamllint
    run: 'true'
static_check:
  name: static-check
  run: 'true'
primary: fedora
parallel: [centos, debian]
actions:
  docker: make -C tests/docker test DISTRO=$distro
"""

MATRIX_YAML = f"""\
{REPO}:
  fedora:
    docker: true
  centos:
    docker: true
  debian:
    docker: true
"""


class FakeActions:
    """Records test action invocations; fails for the configured distros."""

    def __init__(self, fail_on: set[str] = frozenset()):
        self.fail_on = set(fail_on)
        self.calls: list[tuple[TestOption, ActionContext]] = []

    async def invoke(self, option: TestOption, context: ActionContext) -> None:
        self.calls.append((option, context))
        if context.distro in self.fail_on:
            raise ActionInvocationError(option.value, 'exited with code 2', exit_code=2)

    def distros(self) -> list[str]:
        return [context.distro for _, context in self.calls]


class FakeCommands:
    """Stands in for the shell runner of precheck and static check stages."""

    def __init__(self, fail_on: set[str] = frozenset()):
        self.fail_on = set(fail_on)
        self.ran: list[str] = []

    async def __call__(self, stage: CommandStageDef) -> CommandResult:
        self.ran.append(stage.name)
        if stage.name in self.fail_on:
            return CommandResult(exit_code=1, stdout='', stderr=f'{stage.name} is unhappy')
        return CommandResult(exit_code=0, stdout='ok', stderr='')


def make_fetch_labels(labels: list[str]):
    calls = []

    async def fetch_labels(repo_id: str, pull_id: str) -> set[str]:
        calls.append((repo_id, pull_id))
        return set(labels)

    fetch_labels.calls = calls
    return fetch_labels


@pytest.fixture
def pipeline() -> PipelineDef:
    return PipelineDef(
        prechecks=[CommandStageDef(name='yamllint', run='yamllint .')],
        static_check=CommandStageDef(name='static-check', run='make check'),
        primary='fedora',
        parallel=['centos', 'debian'],
        actions={TestOption.docker: 'make -C tests/docker test DISTRO=$distro'},
    )


@pytest.fixture
def full_matrix() -> TestMatrix:
    return TestMatrix(
        {
            (REPO, 'fedora'): {'docker': True},
            (REPO, 'centos'): {'docker': True},
            (REPO, 'debian'): {'docker': True},
        }
    )


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    (tmp_path / 'matrixci.yml').write_text(PIPELINE_YAML)
    (tmp_path / 'test-matrix.yml').write_text(MATRIX_YAML)
    return tmp_path
