# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Evaluation of flat (bracket-free) address expressions.

A flat expression is a left to right sequence of signed operands, such
as ``libc.so.6+0x1f00-10``.  Each operand is either the name of a module
from the module table, or a number.  Numbers are *always* read as
hexadecimal, whether or not they carry a ``0x`` prefix, so ``10`` is
sixteen.

Any character that cannot start or continue an operand (including the
bracket markers left behind by nested resolution) is skipped.
"""
import logging
import re
from typing import Iterable, Iterator, Optional, Tuple, Union

from ptrchain.framework import constants, exceptions, modules as modules_

vollog = logging.getLogger(__name__)

_OPERAND_PATTERN = re.compile(r"([-+])?\s*(\w(?:\w|-)*(?:\.\w+)*)")
_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")

Token = Tuple[Optional[str], str]
ModulesType = Union[modules_.ModuleTable, Iterable[modules_.ModuleEntry]]


def has_operands(expression: str) -> bool:
    """Returns whether expression contains anything that would be
    evaluated."""
    return _OPERAND_PATTERN.search(expression) is not None


def _split_point(text: str, table: modules_.ModuleTable) -> Optional[int]:
    """Determines where a hyphenated run should be cut into two operands.

    A hyphen stays part of the run only if the whole run names a module.
    Otherwise the run is cut before the hyphen ending the longest prefix
    that names a module, or before the first hyphen if there is none.
    """
    hyphens = [index for index, char in enumerate(text) if char == "-"]
    if not hyphens or table.find(text) is not None:
        return None
    for index in reversed(hyphens):
        if table.find(text[:index]) is not None:
            return index
    return hyphens[0]


def tokenize(expression: str, modules: ModulesType) -> Iterator[Token]:
    """Yields (sign, text) pairs for each operand in expression.

    The sign is None when no operator was written before the operand.
    """
    table = modules_.ModuleTable.wrap(modules)
    position = 0
    while True:
        match = _OPERAND_PATTERN.search(expression, position)
        if match is None:
            return
        sign, text = match.group(1), match.group(2)
        cut = _split_point(text, table)
        if cut is None:
            position = match.end()
        else:
            text = text[:cut]
            position = match.start(2) + cut
        yield sign, text


def operand_value(expression: str, text: str, modules: ModulesType) -> int:
    """Returns the value of a single operand.

    Module names take precedence over numbers, so a module called ``ff``
    hides the number 255.
    """
    record = modules_.ModuleTable.wrap(modules).find(text)
    if record is not None:
        return record.base

    digits = text
    while digits.startswith(constants.HEX_PREFIX):
        digits = digits[len(constants.HEX_PREFIX) :]
    if not _HEX_DIGITS.fullmatch(digits):
        raise exceptions.InvalidOperandException(
            expression, text, f"Invalid number: {text}"
        )
    value = int(digits, 16)
    if value > constants.ADDRESS_MASK:
        raise exceptions.InvalidOperandException(
            expression, text, f"Number too large for a {constants.ADDRESS_BITS}-bit address: {text}"
        )
    return value


def evaluate(expression: str, modules: ModulesType) -> int:
    """Reduces a flat expression to a single address.

    The first operand seeds the address (its sign is ignored), every
    following operand is added or subtracted modulo 2**64.  An expression
    without operands evaluates to 0.

    Args:
        expression: The flat expression to evaluate
        modules: The module table used to resolve names

    Returns:
        The resulting address
    """
    table = modules_.ModuleTable.wrap(modules)
    address = 0
    first_item = True
    for sign, text in tokenize(expression, table):
        value = operand_value(expression, text, table)
        if first_item:
            address = value
            first_item = False
        elif sign == "-":
            address = (address - value) & constants.ADDRESS_MASK
        else:
            address = (address + value) & constants.ADDRESS_MASK
    vollog.log(constants.LOGLEVEL_VVV, f"Evaluated {expression!r} to {address:#x}")
    return address
