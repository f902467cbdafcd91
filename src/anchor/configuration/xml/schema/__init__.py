# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from functools import cache
from pathlib import Path
from typing import Protocol

from lxml import etree

__all__ = 'RelaxNGValidator', 'Validator'


type ETreeElement = etree._Element  # noqa: SLF001


class Validator(Protocol):
    @property
    def errors(self) -> list[str]: ...

    def validate(self, element: ETreeElement) -> bool: ...


@cache
def _load_schema(path: Path) -> etree.RelaxNG:
    return etree.RelaxNG(file=str(path))


class RelaxNGValidator:
    """Validates XML documents against one of the RelaxNG schemas that live in this package"""

    schema_directory = Path(__file__).parent

    def __init__(self, schema_file: str) -> None:
        self.schema_path = self.schema_directory / schema_file
        self.schema = _load_schema(self.schema_path)
        self._errors: list[str] = []

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.schema_path.name!r})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelaxNGValidator):
            return self.schema_path == other.schema_path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.schema_path)

    @property
    def errors(self) -> list[str]:
        """The errors found by the last validation, if it failed"""
        return self._errors

    def validate(self, element: ETreeElement) -> bool:
        valid = self.schema.validate(element)
        self._errors = [] if valid else [f'line {error.line}: {error.message}' for error in self.schema.error_log]
        return valid
