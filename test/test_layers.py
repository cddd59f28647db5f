import ctypes
import errno
import os
import struct
import sys

import pytest

from ptrchain.framework import exceptions
from ptrchain.framework.layers import physical, process

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="requires a Linux /proc"
)


#
# BUFFER READER
#


def test_buffer_reads_within_region(pid):
    reader = physical.BufferMemoryReader(regions={pid: {0x1000: bytes(range(16))}})
    assert reader.read(pid, 0x1004, 4) == bytes([4, 5, 6, 7])
    assert reader.read_dword(pid, 0x1000) == struct.unpack("<I", bytes(range(4)))[0]
    assert reader.read_pointer(pid, 0x1008) == struct.unpack("<Q", bytes(range(8, 16)))[0]


@pytest.mark.parametrize("address, length", [(0xFFF, 4), (0x100D, 4), (0x2000, 1)])
def test_buffer_rejects_reads_outside_regions(pid, address, length):
    reader = physical.BufferMemoryReader(regions={pid: {0x1000: bytes(16)}})
    assert not reader.is_valid(pid, address, length)
    with pytest.raises(exceptions.MemoryReadException) as excinfo:
        reader.read(pid, address, length)
    assert excinfo.value.invalid_address == address
    assert excinfo.value.layer_name == "buffer"


def test_buffer_regions_are_per_process(pid):
    reader = physical.BufferMemoryReader.from_pointers(pid, {0x10: 0x1234})
    assert reader.read_pointer(pid, 0x10) == 0x1234
    with pytest.raises(exceptions.MemoryReadException):
        reader.read_pointer(pid + 1, 0x10)


def test_read_failure_message(pid):
    reader = physical.BufferMemoryReader(name="replay")
    with pytest.raises(exceptions.MemoryReadException) as excinfo:
        reader.read_pointer(pid, 0xABC)
    assert "0xabc" in str(excinfo.value)
    assert str(pid) in str(excinfo.value)
    assert excinfo.value.layer_name == "replay"


def test_short_read_is_a_failure(pid):
    class TruncatingReader(physical.BufferMemoryReader):
        def read(self, pid, address, length):
            return super().read(pid, address, length)[:-1]

    reader = TruncatingReader(regions={pid: {0: bytes(8)}})
    with pytest.raises(exceptions.MemoryReadException):
        reader.read_pointer(pid, 0)


#
# LIVE READERS
#


@pytest.fixture
def own_memory():
    """A 64-bit value held in this process, and its address"""
    value = ctypes.c_uint64(0x0123456789ABCDEF)
    return value, ctypes.addressof(value)


def _read_or_skip(reader, pid, address, method):
    try:
        return getattr(reader, method)(pid, address)
    except exceptions.MemoryReadException as excp:
        if isinstance(excp.cause, OSError) and excp.cause.errno in (
            errno.EPERM,
            errno.EACCES,
            errno.ENOSYS,
        ):
            pytest.skip(f"{reader.name} is not permitted here: {excp.cause}")
        raise


@linux_only
@pytest.mark.parametrize("reader_class", [process.ProcessVMReader, process.ProcFSReader])
def test_live_reader_reads_own_process(reader_class, own_memory):
    value, address = own_memory
    reader = reader_class()
    assert _read_or_skip(reader, os.getpid(), address, "read_pointer") == 0x0123456789ABCDEF
    assert _read_or_skip(reader, os.getpid(), address, "read_dword") == 0x89ABCDEF


@linux_only
@pytest.mark.parametrize("reader_class", [process.ProcessVMReader, process.ProcFSReader])
def test_live_reader_unmapped_address(reader_class):
    reader = reader_class()
    with pytest.raises(exceptions.MemoryReadException) as excinfo:
        reader.read(os.getpid(), 0, 8)
    assert excinfo.value.pid == os.getpid()
    assert excinfo.value.invalid_address == 0


@pytest.mark.parametrize("reader_class", [process.ProcessVMReader, process.ProcFSReader])
def test_live_reader_missing_process(reader_class):
    # pid_max never exceeds 2**22
    with pytest.raises(exceptions.MemoryReadException):
        reader_class().read(0x7FFFFFFF, 0x1000, 8)


def test_procfs_location():
    assert process.ProcFSReader(proc_path="/proc").location(12) == os.path.join(
        "/proc", "12", "mem"
    )


def test_reader_modules_are_documented():
    assert physical.__doc__ and process.__doc__
    assert physical.BufferMemoryReader.__doc__
