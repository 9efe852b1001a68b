"""Test matrix: which named test options apply to a (repository, distro) pair.

The matrix file is a YAML document shaped as::

    owner/repo:
      fedora:
        docker: true
      centos:
        integration: smoke

Pairs absent from the file resolve to an empty option set.
"""

import logging
import yaml
from collections.abc import Iterator, Mapping
from pathlib import Path
from pydantic import BeforeValidator, StrictBool, StrictStr, TypeAdapter, ValidationError
from types import MappingProxyType
from typing import Annotated
from yaml import YAMLError

from matrixci.exceptions import MatrixParseError

logger = logging.getLogger(__name__)

OptionValue = StrictBool | StrictStr


def _key(v):
    # yaml turns unquoted `8` or `20.10` into numbers, and 20.10 loses its zero
    if not isinstance(v, str):
        raise ValueError(f'key {v!r} is not a string, quote it')
    return v


def _none_as_empty(v):
    return {} if v is None else v


Key = Annotated[str, BeforeValidator(_key)]
Options = Annotated[dict[Key, OptionValue], BeforeValidator(_none_as_empty)]
Distros = Annotated[dict[Key, Options], BeforeValidator(_none_as_empty)]

_document = TypeAdapter(dict[Key, Distros])

_EMPTY: Mapping[str, OptionValue] = MappingProxyType({})


class TestMatrix(Mapping[tuple[str, str], Mapping[str, OptionValue]]):
    __test__ = False

    _entries: Mapping[tuple[str, str], Mapping[str, OptionValue]]

    def __init__(self, entries: Mapping[tuple[str, str], Mapping[str, bool | str]]):
        self._entries = MappingProxyType(
            {key: MappingProxyType(dict(options)) for key, options in entries.items()}
        )

    def __getitem__(self, key: tuple[str, str]) -> Mapping[str, OptionValue]:
        return self._entries[key]

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f'TestMatrix({dict(self._entries)!r})'

    def options_for(self, repo: str, distro: str) -> Mapping[str, OptionValue]:
        return self._entries.get((repo, distro), _EMPTY)


def load(source: bytes | str) -> TestMatrix:
    try:
        data = yaml.safe_load(source)
    except YAMLError as e:
        raise MatrixParseError(f'Test matrix is not valid YAML: {e}') from e
    if data is None:
        return TestMatrix({})
    try:
        document = _document.validate_python(data)
    except ValidationError as e:
        raise MatrixParseError(f'Invalid test matrix: {e}') from e

    entries = {}
    for repo, distros in document.items():
        for distro, options in distros.items():
            entries[(repo, distro)] = options
    logger.debug(f'Loaded test matrix with {len(entries)} entries')
    return TestMatrix(entries)


def load_file(path: Path) -> TestMatrix:
    if not path.is_file():
        raise MatrixParseError(f'Test matrix file {path} not found')
    return load(path.read_bytes())
