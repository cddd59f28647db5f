# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Module tables map the names of loaded modules to their base addresses.

A table is supplied by the caller (usually derived from the process maps)
and is only ever read during a resolution.  Names are matched without
regard to case and, when names collide, the first entry in table order
wins.
"""
import collections.abc
import json
import logging
from typing import Any, Dict, Iterable, Iterator, NamedTuple, Optional, Union, overload

from ptrchain import schemas
from ptrchain.framework import constants, exceptions

vollog = logging.getLogger(__name__)


class ModuleRecord(NamedTuple):
    name: str
    base: int


ModuleEntry = Union[ModuleRecord, Dict[str, Any], Iterable[Any]]


class ModuleTable(collections.abc.Sequence):
    """An ordered, immutable sequence of :class:`ModuleRecord` entries."""

    def __init__(self, records: Iterable[ModuleEntry] = ()) -> None:
        self._records = tuple(self._coerce(record) for record in records)
        self._index: Dict[str, ModuleRecord] = {}
        for record in self._records:
            self._index.setdefault(record.name.lower(), record)

    @classmethod
    def wrap(cls, modules: Union["ModuleTable", Iterable[ModuleEntry]]) -> "ModuleTable":
        """Returns modules unchanged if it is already a table, otherwise
        constructs one from the entries."""
        if isinstance(modules, ModuleTable):
            return modules
        return cls(modules)

    @staticmethod
    def _parse_base(base: Any) -> int:
        if isinstance(base, str):
            try:
                base = int(base, 0)
            except ValueError:
                raise exceptions.ModuleTableException(f"Invalid base address: {base}")
        if isinstance(base, bool) or not isinstance(base, int):
            raise exceptions.ModuleTableException(
                f"Invalid base address type: {type(base).__name__}"
            )
        if not 0 <= base <= constants.ADDRESS_MASK:
            raise exceptions.ModuleTableException(
                f"Base address out of range: {base:#x}"
            )
        return base

    @classmethod
    def _coerce(cls, record: ModuleEntry) -> ModuleRecord:
        if isinstance(record, ModuleRecord):
            return ModuleRecord(record.name, cls._parse_base(record.base))
        if isinstance(record, collections.abc.Mapping):
            try:
                name = record[constants.MODULE_NAME_KEY]
                base = record[constants.MODULE_BASE_KEY]
            except KeyError as excp:
                raise exceptions.ModuleTableException(
                    f"Module entry is missing the {excp} key"
                )
        else:
            try:
                name, base = record
            except (TypeError, ValueError):
                raise exceptions.ModuleTableException(
                    f"Module entry is not a (name, base) pair: {record!r}"
                )
        if not isinstance(name, str):
            raise exceptions.ModuleTableException(
                f"Module name is not a string: {name!r}"
            )
        return ModuleRecord(name, cls._parse_base(base))

    @classmethod
    def from_json(cls, data: Any) -> "ModuleTable":
        """Constructs a table from a decoded JSON document.

        The document is either a list of ``{"modulename": ..., "base": ...}``
        objects, or an object holding such a list under ``"modules"``.
        """
        if not schemas.validate(data, "modules"):
            raise exceptions.ModuleTableException(
                "Module table does not match the module table schema"
            )
        if isinstance(data, collections.abc.Mapping):
            data = data[constants.MODULE_LIST_KEY]
        table = cls(data)
        vollog.debug(f"Loaded module table with {len(table)} entries")
        return table

    @classmethod
    def from_file(cls, path: str) -> "ModuleTable":
        """Constructs a table from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as excp:
                raise exceptions.ModuleTableException(
                    f"Module table {path} is not valid JSON: {excp}"
                )
        return cls.from_json(data)

    def find(self, name: str) -> Optional[ModuleRecord]:
        """Returns the first record whose name matches name, ignoring case."""
        return self._index.get(name.lower())

    def to_json(self) -> list:
        return [
            {constants.MODULE_NAME_KEY: record.name, constants.MODULE_BASE_KEY: record.base}
            for record in self._records
        ]

    @overload
    def __getitem__(self, index: int) -> ModuleRecord: ...

    @overload
    def __getitem__(self, index: slice) -> "ModuleTable": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return ModuleTable(self._records[index])
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ModuleRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"<ModuleTable [{', '.join(record.name for record in self._records)}]>"
