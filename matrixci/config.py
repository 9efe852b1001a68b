import os
import yaml
from joserfc.jwk import RSAKey
from pathlib import Path
from pydantic import AfterValidator, BeforeValidator, Field, SecretStr, field_validator
from pydantic_core.core_schema import ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Annotated

from matrixci.const import ENV_PREFIX, GH_API_BASE, PIPELINE_FILE, SKIP_LABEL


def _default_data_dir() -> Path:
    data_home = os.getenv('XDG_DATA_HOME') or os.path.expanduser('~/.local/share')
    return Path(data_home) / 'matrixci'


class Config(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file='.env',
        extra='ignore',
        arbitrary_types_allowed=True,
    )

    host: str = '127.0.0.1'
    port: int = 8000
    debug: bool = False

    data_dir: Annotated[Path, AfterValidator(lambda path: path.absolute())] = (
        _default_data_dir()
    )
    runs_dir: Path = Field(None, validate_default=True)
    repos_dir: Path = Field(None, validate_default=True)

    pipeline_file: str = PIPELINE_FILE
    skip_label: str = SKIP_LABEL

    # Identifiers of the pull request being built, as exported by the CI host
    repo: str | None = None
    pull_id: str | None = None

    github_token: SecretStr | None = None
    github_api_base: str = GH_API_BASE

    gh_app_id: int | None = None
    gh_key: (
        Annotated[RSAKey, BeforeValidator(lambda data: RSAKey.import_key(data))] | None
    ) = None
    webhook_secret: SecretStr | None = None

    # noinspection PyNestedDecorators
    @field_validator('runs_dir', 'repos_dir', mode='before')
    @classmethod
    def default_dirs(cls, v: Path | None, info: ValidationInfo):
        if 'data_dir' not in info.data:
            # pydantic won't show errors until everything is validated
            # we don't want to show all _dir fields as errored if data_dir is not set
            return ''
        if v is None:
            return info.data['data_dir'] / info.field_name.removesuffix('_dir')
        return Path(v)

    # noinspection PyNestedDecorators
    @field_validator('repo', 'pull_id', mode='before')
    @classmethod
    def empty_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_credentials(self) -> bool:
        return self.github_token is not None and bool(
            self.github_token.get_secret_value()
        )


config_home = Path(os.getenv('XDG_CONFIG_HOME') or os.path.expanduser('~/.config'))
config_file = config_home / 'matrixci' / 'config.yml'
if config_file.is_file():
    config_values = yaml.safe_load(config_file.read_text()) or {}
else:
    config_values = {}
config = Config(**config_values)

__all__ = ['Config', 'config']
