# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Memory readers that serve reads from buffers already held in memory."""
import logging
import struct
from typing import Dict, Mapping, Optional

from ptrchain.framework import constants, exceptions, interfaces

vollog = logging.getLogger(__name__)


class BufferMemoryReader(interfaces.layers.MemoryReaderInterface):
    """A MemoryReader class backed by buffers in memory, designed for testing
    and replaying captured memory.

    Each process owns a set of regions, every region is a buffer placed at
    a base address.  A read must fall entirely within a single region.
    """

    def __init__(
        self,
        name: str = "buffer",
        regions: Optional[Mapping[int, Mapping[int, bytes]]] = None,
    ) -> None:
        super().__init__(name)
        self._regions: Dict[int, Dict[int, bytes]] = {}
        for pid, buffers in (regions or {}).items():
            for offset, buffer in buffers.items():
                self.add_region(pid, offset, buffer)

    @classmethod
    def from_pointers(
        cls, pid: int, pointers: Mapping[int, int], name: str = "buffer"
    ) -> "BufferMemoryReader":
        """Constructs a reader for which each address in pointers holds the
        corresponding 64-bit little-endian value."""
        reader = cls(name)
        for address, value in pointers.items():
            reader.add_region(
                pid, address, struct.pack("<Q", value & constants.ADDRESS_MASK)
            )
        return reader

    def add_region(self, pid: int, offset: int, buffer: bytes) -> None:
        """Places buffer at offset within the address space of pid."""
        self._regions.setdefault(pid, {})[offset] = bytes(buffer)

    def is_valid(self, pid: int, address: int, length: int = 1) -> bool:
        """Returns whether the entire chunk is held by one region."""
        return self._find_region(pid, address, length) is not None

    def _find_region(self, pid: int, address: int, length: int) -> Optional[int]:
        for offset, buffer in self._regions.get(pid, {}).items():
            if offset <= address and address + length <= offset + len(buffer):
                return offset
        return None

    def read(self, pid: int, address: int, length: int) -> bytes:
        """Reads the data from the buffer."""
        if pid not in self._regions:
            raise exceptions.MemoryReadException(
                self.name, pid, address, "No such process"
            )
        offset = self._find_region(pid, address, length)
        if offset is None:
            vollog.debug(f"No buffer in {self.name} holds {address:#x}+{length}")
            raise exceptions.MemoryReadException(
                self.name, pid, address, "Offset outside of the buffer boundaries"
            )
        real_address = address - offset
        return self._regions[pid][offset][real_address : real_address + length]
