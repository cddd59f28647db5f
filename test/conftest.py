# This file is used to augment the test configuration

import os
import sys

import pytest

from ptrchain.framework import modules
from ptrchain.framework.layers import physical

TEST_PID = 4242


def pytest_addoption(parser):
    parser.addoption(
        "--ptrchain",
        action="store",
        default=os.path.join(os.path.dirname(os.path.dirname(__file__)), "ptr.py"),
        help="path to the ptrchain script",
    )

    parser.addoption(
        "--python",
        action="store",
        default=sys.executable,
        help="The name of the interpreter to use when running the ptrchain script",
    )


# Fixtures
@pytest.fixture
def ptrchain(request):
    return request.config.getoption("--ptrchain")


@pytest.fixture
def python(request):
    return request.config.getoption("--python")


@pytest.fixture
def pid():
    return TEST_PID


@pytest.fixture
def module_table():
    return modules.ModuleTable(
        [
            ("lib.so", 0x1000),
            ("libgame-1.2.so", 0x7F0000000000),
            ("game", 0x400000),
        ]
    )


@pytest.fixture
def chain_reader(pid):
    """A reader holding a two level pointer chain rooted in lib.so"""
    return physical.BufferMemoryReader.from_pointers(
        pid,
        {
            0x1010: 0x2000,
            0x2020: 0x3000,
            0x400010: 0xDEADBEEF00,
        },
    )
