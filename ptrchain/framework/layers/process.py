# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""Readers that fetch memory from live processes on Linux.

:class:`ProcessVMReader` copies memory with the ``process_vm_readv``
system call, :class:`ProcFSReader` reads the ``/proc/<pid>/mem`` file.
Both need the same privileges as attaching a debugger to the target.
"""
import ctypes
import ctypes.util
import logging
import os
import sys
from typing import Any, Optional

from ptrchain.framework import exceptions, interfaces

vollog = logging.getLogger(__name__)


class IOVec(ctypes.Structure):
    _fields_ = [("iov_base", ctypes.c_void_p), ("iov_len", ctypes.c_size_t)]


class ProcessVMReader(interfaces.layers.MemoryReaderInterface):
    """A MemoryReader that copies memory out of another process with
    process_vm_readv(2)."""

    def __init__(self, name: str = "process_vm") -> None:
        super().__init__(name)
        self._libc: Optional[Any] = None

    @property
    def _process_vm_readv(self) -> Optional[Any]:
        """Property to load libc on first use, returns None where the system
        call is not available."""
        if self._libc is None:
            if not sys.platform.startswith("linux"):
                return None
            libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
            if not hasattr(libc, "process_vm_readv"):
                return None
            libc.process_vm_readv.restype = ctypes.c_ssize_t
            libc.process_vm_readv.argtypes = [
                ctypes.c_int,  # pid_t
                ctypes.POINTER(IOVec),
                ctypes.c_ulong,  # liovcnt
                ctypes.POINTER(IOVec),
                ctypes.c_ulong,  # riovcnt
                ctypes.c_ulong,  # flags
            ]
            self._libc = libc
        return self._libc.process_vm_readv

    def read(self, pid: int, address: int, length: int) -> bytes:
        """Reads length bytes at address from the memory of pid."""
        process_vm_readv = self._process_vm_readv
        if process_vm_readv is None:
            raise exceptions.MemoryReadException(
                self.name, pid, address, "process_vm_readv is not available"
            )

        buffer = ctypes.create_string_buffer(length)
        local = IOVec(ctypes.cast(buffer, ctypes.c_void_p), length)
        remote = IOVec(ctypes.c_void_p(address), length)
        nread = process_vm_readv(
            int(pid), ctypes.byref(local), 1, ctypes.byref(remote), 1, 0
        )
        if nread < 0:
            error = ctypes.get_errno()
            vollog.debug(
                f"process_vm_readv failed for process {pid} at {address:#x}: {os.strerror(error)}"
            )
            raise exceptions.MemoryReadException(
                self.name, pid, address, OSError(error, os.strerror(error))
            )
        if nread < length:
            raise exceptions.MemoryReadException(
                self.name,
                pid,
                address + nread,
                f"Could only read {nread} of {length} bytes",
            )
        return buffer.raw[:length]


class ProcFSReader(interfaces.layers.MemoryReaderInterface):
    """A MemoryReader backed by the /proc/<pid>/mem file of a process.

    The file is opened for every read, so no handle outlives a call.
    """

    def __init__(self, name: str = "procfs", proc_path: str = "/proc") -> None:
        super().__init__(name)
        self._proc_path = proc_path

    def location(self, pid: int) -> str:
        """Returns the path of the memory file for pid."""
        return os.path.join(self._proc_path, str(pid), "mem")

    def read(self, pid: int, address: int, length: int) -> bytes:
        """Reads from the memory file at address for length."""
        try:
            with open(self.location(pid), "rb", buffering=0) as mem_file:
                mem_file.seek(address)
                data = mem_file.read(length)
        except (OSError, OverflowError) as excp:
            vollog.debug(f"Reading {self.location(pid)} at {address:#x} failed: {excp}")
            raise exceptions.MemoryReadException(
                self.name, pid, address, excp
            ) from excp

        if len(data) < length:
            raise exceptions.MemoryReadException(
                self.name,
                pid,
                address + len(data),
                f"Could not read sufficient bytes from {self.location(pid)}",
            )
        return data
