from enum import Enum
from pydantic import BaseModel, ConfigDict, StringConstraints, model_validator
from typing import Annotated

from matrixci.const import MATRIX_FILE

StageName = Annotated[str, StringConstraints(pattern=r'^[a-zA-Z_][\w\-.]*$')]


class TestOption(str, Enum):
    __test__ = False

    docker = 'docker'
    integration = 'integration'
    upgrade = 'upgrade'

    @classmethod
    def parse(cls, name: str) -> 'TestOption | None':
        try:
            return cls(name)
        except ValueError:
            return None


class CommandStageDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: StageName
    run: str


class PipelineDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    matrix_file: str = MATRIX_FILE
    prechecks: list[CommandStageDef] = []
    static_check: CommandStageDef
    primary: StageName
    parallel: list[StageName] = []
    actions: dict[TestOption, str] = {}

    @model_validator(mode='after')
    def v_unique_names(self):
        names = [x.name for x in self.prechecks]
        names.append(self.static_check.name)
        names.append(self.primary)
        names.extend(self.parallel)
        seen = set()
        for name in names:
            if name in seen:
                raise ValueError(f'stage name {name!r} is used more than once')
            seen.add(name)
        return self

    @property
    def distros(self) -> list[str]:
        return [self.primary, *self.parallel]
