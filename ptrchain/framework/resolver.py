# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Resolution of nested pointer-chain expressions.

An expression such as ``[[game.so+0x10]+0x20]+0x8`` is resolved in a
single left to right pass.  Text before an opening bracket is parked on
a stack, and when the matching bracket closes the enclosed expression is
evaluated, the pointer at the resulting address is read, and its value
is appended (as hexadecimal text) to the parked prefix.  Because brackets
close in order, inner groups are always dereferenced before the groups
that contain them.  Once no brackets remain the substituted text is
evaluated one last time.

Bracket characters are left in the text as markers, the flat evaluator
skips them.
"""
import logging
import re
from typing import List

from ptrchain.framework import constants, exceptions, expressions, interfaces
from ptrchain.framework import modules as modules_

vollog = logging.getLogger(__name__)

_SCAN_PATTERN = re.compile(r"(\[)|(\])|([^\[\]]+)")


def check_brackets(expression: str) -> None:
    """Raises a MalformedExpressionException if the brackets in expression
    do not balance."""
    depth = 0
    for position, char in enumerate(expression):
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth < 0:
                raise exceptions.MalformedExpressionException(
                    expression, position, f"Unmatched ']' at position {position}"
                )
    if depth:
        raise exceptions.MalformedExpressionException(
            expression, len(expression), f"{depth} unclosed '[' in expression"
        )


def resolve_nested_address(
    pid: int,
    expression: str,
    modules: expressions.ModulesType,
    reader: interfaces.layers.MemoryReaderInterface,
    strict: bool = False,
) -> int:
    """Resolves an expression containing bracketed dereferences to a 64-bit
    address.

    Malformed brackets are only rejected when strict is set.  Otherwise an
    unbalanced expression resolves to whatever the partially built text
    evaluates to, and an empty group is left undereferenced.

    Args:
        pid: The process whose memory is dereferenced
        expression: The (possibly nested) expression to resolve
        modules: The module table used to resolve names
        reader: The reader used to dereference pointers
        strict: Whether to raise on malformed brackets

    Returns:
        The resolved address
    """
    table = modules_.ModuleTable.wrap(modules)
    if strict:
        check_brackets(expression)

    stack: List[str] = []
    current_expr = ""

    for match in _SCAN_PATTERN.finditer(expression):
        if match.group(1):
            if current_expr:
                stack.append(current_expr)
                current_expr = ""
            current_expr += "["
        elif match.group(2):
            if current_expr and not expressions.has_operands(current_expr):
                # Nothing inside the group, so nothing to dereference
                if strict:
                    raise exceptions.MalformedExpressionException(
                        expression,
                        match.start(),
                        f"Empty bracket group closed at position {match.start()}",
                    )
                current_expr += "]"
                if stack:
                    current_expr = stack.pop() + current_expr
                continue
            if current_expr:
                inner_value = expressions.evaluate(current_expr, table)
                memory_value = reader.read_pointer(pid, inner_value)
                vollog.log(
                    constants.LOGLEVEL_VV,
                    f"Dereferenced {inner_value:#x} in process {pid}: {memory_value:#x}",
                )
                if stack:
                    current_expr = stack.pop() + f"0x{memory_value:X}"
                else:
                    current_expr = f"0x{memory_value:X}"
            current_expr += "]"
        else:
            current_expr += match.group(3)

    if stack:
        vollog.debug(f"Unbalanced expression left {len(stack)} pending prefixes")
    return expressions.evaluate(current_expr, table)


def resolve_symbolic_address(
    pid: int,
    expression: str,
    modules: expressions.ModulesType,
    reader: interfaces.layers.MemoryReaderInterface,
    bits: int = constants.ADDRESS_BITS,
    strict: bool = False,
) -> int:
    """Resolves a symbolic address expression for a process, narrowed to an
    unsigned integer of the requested width.

    Errors raised while evaluating or reading are propagated unchanged.

    Args:
        pid: The process whose memory is dereferenced
        expression: The symbolic expression to resolve
        modules: The module table used to resolve names
        reader: The reader used to dereference pointers
        bits: The width, in bits, of the returned address
        strict: Whether to raise on malformed brackets

    Returns:
        The resolved address, truncated to bits
    """
    if bits % 8 or not 8 <= bits <= constants.ADDRESS_BITS:
        raise ValueError(f"Unsupported address width: {bits} bits")
    resolved = resolve_nested_address(pid, expression, modules, reader, strict)
    vollog.debug(f"Resolved {expression!r} in process {pid} to {resolved:#x}")
    return resolved & ((1 << bits) - 1)
