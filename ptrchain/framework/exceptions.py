# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""A list of potential exceptions that ptrchain can throw.

These include exceptions thrown while evaluating an address expression,
by memory readers when a remote read fails, and while loading module
tables.  Every exception is fatal to the resolution that raised it, no
partial results are ever returned.
"""
from typing import Any


class PointerChainException(Exception):
    """Class to allow filtering of all PointerChainExceptions."""


class ExpressionException(PointerChainException):
    """Thrown when an address expression cannot be evaluated."""

    def __init__(self, expression: str, *args) -> None:
        super().__init__(*args)
        self.expression = expression


class InvalidOperandException(ExpressionException):
    """Thrown when an operand is neither a known module name nor a valid
    hexadecimal number.

    Unknown module names are reported through this exception too, since
    they can only be told apart from numbers once both lookups fail.
    """

    def __init__(self, expression: str, operand: str, *args) -> None:
        super().__init__(expression, *args)
        self.operand = operand


class MalformedExpressionException(ExpressionException):
    """Thrown in strict mode when brackets are unbalanced or a bracket group
    contains nothing to evaluate."""

    def __init__(self, expression: str, position: int, *args) -> None:
        super().__init__(expression, *args)
        self.position = position


class LayerException(PointerChainException):
    """Thrown when an error occurs dealing with memory readers."""

    def __init__(self, layer_name: str, *args) -> None:
        super().__init__(*args)
        self.layer_name = layer_name


class MemoryReadException(LayerException):
    """Thrown when a remote read of a process's memory fails.

    The cause is opaque (missing process, unmapped address, permission
    denial or a short read) and is carried for display only.
    """

    def __init__(
        self, layer_name: str, pid: int, invalid_address: int, cause: Any, *args
    ) -> None:
        if not args:
            args = (
                f"Failed to read memory of process {pid} at address {invalid_address:#x}: {cause}",
            )
        super().__init__(layer_name, *args)
        self.pid = pid
        self.invalid_address = invalid_address
        self.cause = cause


class ModuleTableException(PointerChainException):
    """Thrown when a module table is malformed."""


class DisassemblyException(PointerChainException):
    """Thrown when the disassembler cannot be constructed or fails to
    decode."""

    def __init__(self, architecture: str, *args) -> None:
        super().__init__(*args)
        self.architecture = architecture
