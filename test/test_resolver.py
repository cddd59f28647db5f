import concurrent.futures
import struct
from unittest import mock

import pytest

from ptrchain.framework import exceptions, expressions, modules, resolver
from ptrchain.framework.layers import physical

MASK = (1 << 64) - 1


def resolve(pid, expression, table, reader, **kwargs):
    return resolver.resolve_symbolic_address(pid, expression, table, reader, **kwargs)


#
# FLAT EXPRESSIONS
#


def test_flat_expression_does_not_read(pid, module_table, chain_reader):
    with mock.patch.object(chain_reader, "read", wraps=chain_reader.read) as read:
        assert resolve(pid, "lib.so+0x10", module_table, chain_reader) == 0x1010
        read.assert_not_called()


def test_module_name_case_insensitive(pid, module_table, chain_reader):
    assert resolve(pid, "GAME", module_table, chain_reader) == 0x400000


#
# DEREFERENCES
#


def test_single_dereference(pid, module_table, chain_reader):
    assert resolve(pid, "[lib.so+0x10]", module_table, chain_reader) == 0x2000


def test_double_dereference(pid, chain_reader):
    table = modules.ModuleTable([("lib.so", 0x1000)])
    assert resolve(pid, "[[lib.so+0x10]+0x20]", table, chain_reader) == 0x3000


def test_dereference_then_offset(pid, module_table, chain_reader):
    assert resolve(pid, "[[lib.so+0x10]+0x20]+0x8", module_table, chain_reader) == (
        0x3008
    )
    assert resolve(pid, "[lib.so+0x10]-0x1000", module_table, chain_reader) == 0x1000


def test_spaced_operators_around_groups(pid, module_table, chain_reader):
    assert resolve(pid, "[lib.so+0x10] - 0x8", module_table, chain_reader) == 0x1FF8
    assert resolve(pid, "game - [lib.so + 0x10]", module_table, chain_reader) == (
        0x400000 - 0x2000
    )


def test_group_without_operator_joins_prefix(pid, module_table, chain_reader):
    # The dereferenced value is spliced in as text, so no operator means
    # the prefix and the value form a single operand
    with pytest.raises(exceptions.InvalidOperandException) as excinfo:
        resolve(pid, "game[lib.so+0x10]", module_table, chain_reader)
    assert excinfo.value.operand == "game0x2000"


def test_prefix_is_preserved(pid, module_table, chain_reader):
    nested = resolve(pid, "game+[lib.so+0x10]", module_table, chain_reader)
    flat = expressions.evaluate("game+" + hex(0x2000), module_table)
    assert nested == flat == 0x402000


def test_several_groups_at_top_level(pid, module_table, chain_reader):
    result = resolve(
        pid, "lib.so+[lib.so+0x10]+[game+0x10]-0x4", module_table, chain_reader
    )
    assert result == (0x1000 + 0x2000 + 0xDEADBEEF00 - 0x4) & MASK


def test_prefix_with_hyphenated_module(pid, module_table, chain_reader):
    result = resolve(pid, "libgame-1.2.so-[lib.so+0x10]", module_table, chain_reader)
    assert result == 0x7F0000000000 - 0x2000


def test_dereferenced_value_wraps(pid, module_table):
    reader = physical.BufferMemoryReader.from_pointers(pid, {0x1000: MASK})
    assert resolve(pid, "[lib.so]+0x2", module_table, reader) == 1


def test_reads_happen_inside_out(pid, module_table, chain_reader):
    with mock.patch.object(
        chain_reader, "read_pointer", wraps=chain_reader.read_pointer
    ) as read_pointer:
        resolve(pid, "[[lib.so+0x10]+0x20]", module_table, chain_reader)
    assert read_pointer.call_args_list == [
        mock.call(pid, 0x1010),
        mock.call(pid, 0x2020),
    ]


def test_dereference_is_little_endian(pid, module_table):
    reader = physical.BufferMemoryReader(
        regions={pid: {0x1000: struct.pack("<Q", 0x1122334455667788)}}
    )
    assert resolve(pid, "[lib.so]", module_table, reader) == 0x1122334455667788


#
# FAILURES
#


def test_read_failure_aborts_resolution(pid, module_table, chain_reader):
    with pytest.raises(exceptions.MemoryReadException) as excinfo:
        resolve(pid, "[lib.so+0x18]+0x4", module_table, chain_reader)
    assert excinfo.value.invalid_address == 0x1018
    assert excinfo.value.pid == pid


def test_inner_failure_stops_outer_reads(pid, module_table, chain_reader):
    with mock.patch.object(chain_reader, "read", wraps=chain_reader.read) as read:
        with pytest.raises(exceptions.MemoryReadException):
            resolve(pid, "[[game]+0x20]", module_table, chain_reader)
    assert read.call_count == 1


def test_unknown_process(module_table, chain_reader):
    with pytest.raises(exceptions.MemoryReadException):
        resolve(1, "[lib.so+0x10]", module_table, chain_reader)


def test_invalid_operand_inside_group(pid, module_table, chain_reader):
    with mock.patch.object(chain_reader, "read", wraps=chain_reader.read) as read:
        with pytest.raises(exceptions.InvalidOperandException) as excinfo:
            resolve(pid, "[missing.so+0x10]", module_table, chain_reader)
    assert excinfo.value.operand == "missing.so"
    read.assert_not_called()


#
# DEGENERATE INPUT
#


def test_empty_group_does_not_read(pid, module_table, chain_reader):
    # An empty group is left undereferenced and resolves like the empty string
    with mock.patch.object(chain_reader, "read", wraps=chain_reader.read) as read:
        assert resolve(pid, "[]", module_table, chain_reader) == resolve(
            pid, "", module_table, chain_reader
        )
        assert resolve(pid, "[ ]", module_table, chain_reader) == 0
        assert resolve(pid, "[[]]", module_table, chain_reader) == 0
        read.assert_not_called()


def test_empty_group_keeps_prefix(pid, module_table, chain_reader):
    assert resolve(pid, "game+[]", module_table, chain_reader) == 0x400000
    assert resolve(pid, "game+[]+0x4", module_table, chain_reader) == 0x400004


def test_unbalanced_brackets_are_not_rejected(pid, module_table, chain_reader):
    # Unclosed groups are never dereferenced, the trailing text is evaluated
    assert resolve(pid, "[lib.so+0x10", module_table, chain_reader) == 0x1010
    # A stray closing bracket dereferences everything before it
    assert resolve(pid, "lib.so+0x10]", module_table, chain_reader) == 0x2000


@pytest.mark.parametrize(
    "expression", ["[lib.so+0x10", "lib.so]", "[[lib.so]", "[lib.so]]", "][", "[]"]
)
def test_strict_rejects_malformed(pid, module_table, chain_reader, expression):
    with mock.patch.object(chain_reader, "read", wraps=chain_reader.read) as read:
        with pytest.raises(exceptions.MalformedExpressionException):
            resolve(pid, expression, module_table, chain_reader, strict=True)
        read.assert_not_called()


def test_strict_accepts_well_formed(pid, module_table, chain_reader):
    assert (
        resolve(pid, "[[lib.so+0x10]+0x20]", module_table, chain_reader, strict=True)
        == 0x3000
    )


def test_check_brackets_reports_position():
    with pytest.raises(exceptions.MalformedExpressionException) as excinfo:
        resolver.check_brackets("a]b")
    assert excinfo.value.position == 1


#
# WIDTH
#


@pytest.mark.parametrize(
    "bits, expected",
    [(64, 0x1122334455667788), (32, 0x55667788), (16, 0x7788), (8, 0x88)],
)
def test_narrowing(pid, bits, expected):
    reader = physical.BufferMemoryReader.from_pointers(pid, {0x10: 0x1122334455667788})
    assert resolve(pid, "[0x10]", [], reader, bits=bits) == expected


@pytest.mark.parametrize("bits", [0, 12, 72, -8])
def test_unsupported_width(pid, chain_reader, bits):
    with pytest.raises(ValueError):
        resolve(pid, "0x10", [], chain_reader, bits=bits)


#
# CONCURRENCY
#


def test_parallel_resolutions_match_sequential():
    table = modules.ModuleTable([("lib.so", 0x1000)])
    jobs = []
    for index in range(32):
        pid = 1000 + index
        reader = physical.BufferMemoryReader.from_pointers(
            pid, {0x1010: 0x2000 + index * 0x100, 0x2020 + index * 0x100: index}
        )
        jobs.append((pid, "[[lib.so+0x10]+0x20]+0x1", reader))

    sequential = [resolve(pid, expr, table, reader) for pid, expr, reader in jobs]
    with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
        parallel = list(
            executor.map(lambda job: resolve(job[0], job[1], table, job[2]), jobs)
        )
    assert parallel == sequential == [index + 1 for index in range(32)]
