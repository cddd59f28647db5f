# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
import logging
from typing import Optional

import capstone

from ptrchain.framework import constants, exceptions

vollog = logging.getLogger(__name__)

ARCHITECTURES = {
    "intel": (capstone.CS_ARCH_X86, capstone.CS_MODE_32),
    "intel64": (capstone.CS_ARCH_X86, capstone.CS_MODE_64),
    "arm": (capstone.CS_ARCH_ARM, capstone.CS_MODE_ARM),
    "arm64": (capstone.CS_ARCH_ARM64, capstone.CS_MODE_ARM),
}


def disassemble(
    data: bytes,
    address: int,
    architecture: str = constants.DEFAULT_ARCHITECTURE,
    count: Optional[int] = None,
) -> str:
    """Disassembles the code in data as if it were loaded at address.

    Decoding stops at the first byte sequence that is not a valid
    instruction, or after count instructions.

    Args:
        data: The machine code to decode
        address: The address of the first byte of data
        architecture: One of intel, intel64, arm or arm64
        count: The maximum number of instructions to decode

    Returns:
        One line per instruction, in the form ``0x1000: mov x0, x1``
    """
    if architecture not in ARCHITECTURES:
        raise ValueError(
            f"Unknown architecture {architecture} (choose from {', '.join(ARCHITECTURES)})"
        )
    try:
        disasm = capstone.Cs(*ARCHITECTURES[architecture])
        result = ""
        for instruction in disasm.disasm(data, address, count or 0):
            result += f"{instruction.address:#x}: {instruction.mnemonic} {instruction.op_str}\n"
    except capstone.CsError as excp:
        raise exceptions.DisassemblyException(
            architecture, f"Failed to disassemble: {excp}"
        ) from excp
    vollog.log(
        constants.LOGLEVEL_VVV,
        f"Disassembled {len(data)} bytes of {architecture} at {address:#x}",
    )
    return result
