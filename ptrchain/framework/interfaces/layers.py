# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Defines readers for fetching data from the address space of a process.

A reader is the only component of ptrchain that touches a target
process.  It never writes, and every failure is reported as a
:class:`~ptrchain.framework.exceptions.MemoryReadException`.
"""
import logging
import struct
from abc import ABCMeta, abstractmethod

from ptrchain.framework import constants, exceptions

vollog = logging.getLogger(__name__)


class MemoryReaderInterface(metaclass=ABCMeta):
    """A reader that directly fetches bytes from a process's virtual address
    space.

    Readers must not hold mutable state that a read depends on, so that a
    single reader can be shared by resolutions running on separate threads.
    """

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        """Returns the reader name."""
        return self._name

    @abstractmethod
    def read(self, pid: int, address: int, length: int) -> bytes:
        """Reads an address for length bytes from the memory of a process and
        returns 'bytes' of length size.

        If there is a fault of any kind (such as a missing process or an
        unmapped page), a MemoryReadException will be thrown.

        Args:
            pid: The identifier of the process to read from
            address: The virtual address at which to begin reading
            length: The number of bytes to read

        Returns:
            The bytes read from the process, starting at address for length bytes
        """

    def _read_exact(self, pid: int, address: int, length: int) -> bytes:
        data = self.read(pid, address, length)
        if len(data) != length:
            raise exceptions.MemoryReadException(
                self.name,
                pid,
                address,
                f"Expected {length} bytes but received {len(data)}",
            )
        return data

    def read_pointer(self, pid: int, address: int) -> int:
        """Reads a little-endian unsigned 64-bit value at address."""
        data = self._read_exact(pid, address, constants.POINTER_SIZE)
        return struct.unpack("<Q", data)[0]

    def read_dword(self, pid: int, address: int) -> int:
        """Reads a little-endian unsigned 32-bit value at address."""
        data = self._read_exact(pid, address, constants.DWORD_SIZE)
        return struct.unpack("<I", data)[0]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} [{self.name}]>"
