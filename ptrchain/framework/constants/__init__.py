# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""ptrchain constants.

Stores all the constant values that are generally fixed throughout
ptrchain.  This includes the widths of remote reads, the address mask
used for wrapping arithmetic and the extra logging levels.
"""
import os.path
import sys

from ptrchain.framework.constants._version import (
    PACKAGE_VERSION,
    VERSION_MAJOR,
    VERSION_MINOR,
    VERSION_PATCH,
    VERSION_SUFFIX,
)

POINTER_SIZE = 8
"""Number of bytes read when dereferencing a pointer"""

DWORD_SIZE = 4
"""Number of bytes read for a 32-bit value"""

ADDRESS_BITS = 64
"""Width of the addresses computed by the resolver"""

ADDRESS_MASK = (1 << ADDRESS_BITS) - 1
"""Mask applied after every addition or subtraction so that arithmetic wraps"""

HEX_PREFIX = "0x"
"""Prefix stripped from operands before they are parsed as hexadecimal"""

LOGLEVEL_INFO = 20
"""Logging level for information data, showed when use the requests any logging: -v"""
LOGLEVEL_DEBUG = 10
"""Logging level for debugging data, showed when the user requests more logging detail: -vv"""
LOGLEVEL_V = 9
"""Logging level for the lowest "extra" level of logging: -vvv"""
LOGLEVEL_VV = 8
"""Logging level for two levels of detail: -vvvv"""
LOGLEVEL_VVV = 7
"""Logging level for three levels of detail: -vvvvv"""
LOGLEVEL_VVVV = 6
"""Logging level for four levels of detail: -vvvvvv"""

MODULE_NAME_KEY = "modulename"
"""Key holding the module name in a JSON module table entry"""

MODULE_BASE_KEY = "base"
"""Key holding the base address in a JSON module table entry"""

MODULE_LIST_KEY = "modules"
"""Key under which a JSON document may nest its list of module entries"""

DEFAULT_READER = "vm"
"""Reader used by the command line when none is requested (process_vm_readv)"""

DEFAULT_ARCHITECTURE = "arm64"
"""Architecture assumed by the disassembler when none is requested"""

DEFAULT_DISASSEMBLY_LENGTH = 64
"""Number of bytes read for disassembly when no length is requested"""

CONFIG_FILENAME = "ptrchain.json"
"""Name of the file holding the command line's system defaults"""

CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".config", "ptrchain")
"""Directory searched for the system defaults file"""

if sys.platform == "win32":
    CONFIG_PATH = os.path.realpath(
        os.path.join(os.environ.get("APPDATA", os.path.expanduser("~")), "ptrchain")
    )
