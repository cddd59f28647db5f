# This file is Copyright 2019 Volatility Foundation and licensed under the Volatility Software License 1.0
# which is available at https://www.volatilityfoundation.org/license/vsl-v1.0
#
"""A CommandLine User Interface for the ptrchain framework.

The command line makes use of the framework to:
 * load a module table describing the target process
 * resolve a symbolic pointer-chain expression against the process
 * disassemble the code found at a resolved address
 * turn an indented directory listing into JSON
"""
import argparse
import json
import logging
import os
import sys
import traceback
from typing import Any, Dict, List, Optional, Tuple

import shtab

from ptrchain import framework
from ptrchain.framework import (
    constants,
    disassembly,
    exceptions,
    filetree,
    interfaces,
    modules,
    resolver,
)
from ptrchain.framework.layers import process

# Make sure we log everything

rootlog = logging.getLogger()
vollog = logging.getLogger(__name__)
console = logging.StreamHandler()
console.setLevel(logging.WARNING)
formatter = logging.Formatter("%(levelname)-8s %(name)-12s: %(message)s")
# Trim the console down by default
console.setFormatter(formatter)

READERS = {
    "vm": process.ProcessVMReader,
    "procfs": process.ProcFSReader,
}
"""Memory readers selectable with --reader"""


def _integer(value: str) -> int:
    return int(value, 0)


class CommandLine:
    """Constructs a command-line interface object for users to resolve
    pointer chains."""

    CLI_NAME = "ptrchain"

    def __init__(self) -> None:
        self.setup_logging()
        self._command_parsers: Dict[str, argparse.ArgumentParser] = {}

    @classmethod
    def setup_logging(cls) -> None:
        # Delay the setting of vollog for those that want to import ptrchain.cli
        rootlog.setLevel(1)
        if console not in rootlog.handlers:
            rootlog.addHandler(console)

    def build_parser(self) -> argparse.ArgumentParser:
        """Constructs the argument parser and one subparser per command."""
        parser = argparse.ArgumentParser(
            prog=self.CLI_NAME,
            description="Resolves symbolic pointer chains against the memory of a running process",
        )
        parser.add_argument(
            "-c",
            "--config",
            help="Load default argument values from a json file",
            default=None,
            type=str,
        )
        parser.add_argument(
            "-v",
            "--verbosity",
            help="Increase output verbosity",
            default=0,
            action="count",
        )
        parser.add_argument(
            "-l",
            "--log",
            help="Log output to a file as well as the console",
            default=None,
            type=str,
        )
        parser.add_argument(
            "-q",
            "--quiet",
            help="Do not print the banner",
            default=False,
            action="store_true",
        )

        subparsers = parser.add_subparsers(
            title="Commands",
            dest="command",
            description=f"For command specific options, run '{self.CLI_NAME} <command> --help'",
        )

        resolve_parser = subparsers.add_parser(
            "resolve", help="Resolve an expression to an address"
        )
        self.add_target_arguments(resolve_parser)
        resolve_parser.add_argument(
            "--bits",
            help="Width of the printed address",
            default=constants.ADDRESS_BITS,
            type=int,
            choices=[8, 16, 32, 64],
        )
        resolve_parser.add_argument(
            "--strict",
            help="Reject unbalanced brackets and empty bracket groups",
            default=False,
            action="store_true",
        )
        resolve_parser.add_argument("expression", help="The expression to resolve")

        disassemble_parser = subparsers.add_parser(
            "disassemble", help="Disassemble the code at a resolved address"
        )
        self.add_target_arguments(disassemble_parser)
        disassemble_parser.add_argument(
            "--arch",
            help="Architecture of the code",
            default=constants.DEFAULT_ARCHITECTURE,
            choices=list(disassembly.ARCHITECTURES),
        )
        disassemble_parser.add_argument(
            "--length",
            help="Number of bytes to read and disassemble",
            default=constants.DEFAULT_DISASSEMBLY_LENGTH,
            type=_integer,
        )
        disassemble_parser.add_argument(
            "expression", help="The expression locating the code"
        )

        tree_parser = subparsers.add_parser(
            "tree", help="Convert an indented directory listing to JSON"
        )
        tree_parser.add_argument("file", help="The listing to convert")

        self._command_parsers = dict(subparsers.choices)
        shtab.add_argument_to(parser, ["--print-completion"])
        return parser

    def add_target_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Adds the arguments describing the target process."""
        parser.add_argument(
            "-p",
            "--pid",
            help="Identifier of the target process",
            default=None,
            type=_integer,
        )
        parser.add_argument(
            "-m",
            "--modules",
            help="JSON file listing the module names and base addresses of the process",
            default=None,
            type=str,
        )
        parser.add_argument(
            "--reader",
            help="Determines how process memory is read",
            default=constants.DEFAULT_READER,
            choices=list(READERS),
        )

    def apply_defaults(
        self, parser: argparse.ArgumentParser, config: Dict[str, Any]
    ) -> None:
        """Makes the values in config the defaults of the parsers owning
        those arguments.

        Values are only set on the parser that defines the argument, since
        a subparser's defaults would otherwise override values given to the
        main parser.
        """
        for owner in [parser] + list(self._command_parsers.values()):
            dests = {action.dest for action in owner._actions}
            owner.set_defaults(
                **{key: value for key, value in config.items() if key in dests}
            )

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Executes the command line module, taking the system arguments,
        determining the command to run and then running it."""

        framework.require_interface_version(1, 0, 0)

        # Load up system defaults
        delayed_logs, default_config = self.load_system_defaults(
            constants.CONFIG_FILENAME
        )

        parser = self.build_parser()
        self.apply_defaults(parser, default_config)
        args = parser.parse_args(argv)
        if args.config:
            delayed_logs.append(
                (logging.INFO, f"Loading configuration from {args.config}")
            )
            self.apply_defaults(parser, self.load_config_file(parser, args.config))
            args = parser.parse_args(argv)

        if not args.quiet:
            sys.stderr.write(f"ptrchain {constants.PACKAGE_VERSION}\n")

        ### Start up logging
        if args.log:
            file_logger = logging.FileHandler(args.log)
            file_logger.setLevel(1)
            file_formatter = logging.Formatter(
                datefmt="%y-%m-%d %H:%M:%S",
                fmt="%(asctime)s %(name)-12s %(levelname)-8s %(message)s",
            )
            file_logger.setFormatter(file_formatter)
            rootlog.addHandler(file_logger)
            vollog.info("Logging started")

        self.order_extra_verbose_levels()
        console.setLevel(self.verbosity_level(args.verbosity))

        for level, msg in delayed_logs:
            vollog.log(level, msg)

        if args.command is None:
            parser.error("Please select a command to run")

        commands = {
            "resolve": self.run_resolve,
            "disassemble": self.run_disassemble,
            "tree": self.run_tree,
        }
        try:
            commands[args.command](parser, args)
        except exceptions.PointerChainException as excp:
            self.process_exceptions(excp)

    def run_resolve(self, parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
        address = resolver.resolve_symbolic_address(
            self.target_pid(parser, args),
            args.expression,
            self.load_modules(parser, args.modules),
            self.build_reader(args.reader),
            bits=args.bits,
            strict=args.strict,
        )
        print(f"{address:#x}")

    def run_disassemble(
        self, parser: argparse.ArgumentParser, args: argparse.Namespace
    ) -> None:
        pid = self.target_pid(parser, args)
        reader = self.build_reader(args.reader)
        address = resolver.resolve_symbolic_address(
            pid, args.expression, self.load_modules(parser, args.modules), reader
        )
        data = reader.read(pid, address, args.length)
        sys.stdout.write(disassembly.disassemble(data, address, args.arch))

    def run_tree(self, parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
        try:
            with open(args.file, "r", encoding="utf-8") as f:
                raw_data = f.read()
        except OSError as excp:
            parser.error(f"Unable to read listing {args.file}: {excp}")
        items = filetree.parse_directory_structure(raw_data)
        print(json.dumps([item.to_dict() for item in items], indent=2))

    def target_pid(self, parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
        if args.pid is None:
            parser.error(f"The {args.command} command requires a process (--pid)")
        return args.pid

    def build_reader(self, name: str) -> interfaces.layers.MemoryReaderInterface:
        """Constructs the memory reader selected on the command line."""
        vollog.debug(f"Using {name} memory reader")
        return READERS[name]()

    def load_modules(
        self, parser: argparse.ArgumentParser, filename: Optional[str]
    ) -> modules.ModuleTable:
        """Loads the module table, or an empty table if no file was given."""
        if filename is None:
            vollog.info("No module table provided, only numeric operands will resolve")
            return modules.ModuleTable()
        try:
            return modules.ModuleTable.from_file(filename)
        except OSError as excp:
            parser.error(f"Unable to read module table {filename}: {excp}")

    def load_config_file(
        self, parser: argparse.ArgumentParser, filename: str
    ) -> Dict[str, Any]:
        """Loads argument defaults from a configuration file."""
        try:
            with open(filename, "r") as f:
                result = json.load(f)
        except (OSError, json.JSONDecodeError) as excp:
            parser.error(f"Unable to load configuration {filename}: {excp}")
        if not isinstance(result, dict):
            parser.error(f"Configuration file {filename} does not contain a dictionary")
        return result

    def load_system_defaults(
        self, filename: str
    ) -> Tuple[List[Tuple[int, str]], Dict[str, Any]]:
        """Modify the main configuration based on the default configuration override"""
        default_config_path = os.path.join(constants.CONFIG_PATH, filename)

        delayed_logs = []

        # Process it if the files exist
        if os.path.exists(default_config_path):
            with open(default_config_path, "rb") as config_json:
                result = json.load(config_json)
            if not isinstance(result, dict):
                delayed_logs.append(
                    (
                        logging.INFO,
                        f"Default configuration file {default_config_path} does not contain a dictionary",
                    )
                )
            else:
                delayed_logs.append(
                    (
                        logging.INFO,
                        f"Loading default configuration options from {default_config_path}",
                    )
                )
                delayed_logs.append(
                    (
                        logging.DEBUG,
                        f"Loaded configuration: {json.dumps(result, indent = 2, sort_keys = True)}",
                    )
                )
                return delayed_logs, result
        return delayed_logs, {}

    def process_exceptions(self, excp: exceptions.PointerChainException) -> None:
        """Provide useful feedback if an exception occurs during a run of a command."""
        sys.stdout.flush()
        sys.stderr.flush()

        # Log the full exception at a high level for easy access
        fulltrace = traceback.TracebackException.from_exception(excp).format(chain=True)
        vollog.debug("".join(fulltrace))

        if isinstance(excp, exceptions.MemoryReadException):
            general = f"ptrchain was unable to read the memory of process {excp.pid}:"
            detail = f"{hex(excp.invalid_address)} using reader {excp.layer_name} ({excp.cause})"
            caused_by = [
                "The process does not exist or has already exited",
                "A pointer in the chain leads to an unmapped address (check the offsets)",
                "Insufficient privileges to read the process (run as the same user or check ptrace_scope)",
            ]
        elif isinstance(excp, exceptions.InvalidOperandException):
            general = "ptrchain could not evaluate an operand:"
            detail = f"{excp.operand} in {excp.expression!r} ({excp})"
            caused_by = [
                "A module name missing from the module table (check --modules)",
                "A number containing non-hexadecimal digits",
            ]
        elif isinstance(excp, exceptions.MalformedExpressionException):
            general = "ptrchain rejected a malformed expression:"
            detail = f"{excp.expression!r} at position {excp.position} ({excp})"
            caused_by = [
                "Unbalanced brackets",
                "A bracket group with nothing to dereference",
            ]
        elif isinstance(excp, exceptions.ModuleTableException):
            general = "ptrchain could not load the module table:"
            detail = f"{excp}"
            caused_by = [
                "Module entries missing the modulename or base keys",
                "Base addresses that are negative or wider than 64 bits",
            ]
        elif isinstance(excp, exceptions.DisassemblyException):
            general = f"ptrchain could not disassemble {excp.architecture} code:"
            detail = f"{excp}"
            caused_by = ["The installed capstone does not support the architecture"]
        elif isinstance(excp, exceptions.LayerException):
            general = f"ptrchain experienced a reader-related issue: {excp.layer_name}"
            detail = f"{excp}"
            caused_by = ["A faulty reader implementation (re-run with -vvv)"]
        else:
            general = "ptrchain encountered an unexpected situation."
            detail = f"{excp}"
            caused_by = ["Please re-run using with -vvv and report the output"]

        # Code that actually renders the exception
        output = sys.stderr
        output.write(f"{general}\n")
        output.write(f"{detail}\n\n")
        for cause in caused_by:
            output.write(f"	* {cause}\n")
        output.write("\nNo further results will be produced\n")
        sys.exit(1)

    @staticmethod
    def verbosity_level(verbosity: int) -> int:
        """Maps the number of -v flags to a console logging level."""
        levels = [
            logging.WARNING,
            constants.LOGLEVEL_INFO,
            constants.LOGLEVEL_DEBUG,
            constants.LOGLEVEL_V,
            constants.LOGLEVEL_VV,
            constants.LOGLEVEL_VVV,
            constants.LOGLEVEL_VVVV,
        ]
        return levels[min(verbosity, len(levels) - 1)]

    def order_extra_verbose_levels(self) -> None:
        for level, level_value in enumerate(
            [
                constants.LOGLEVEL_V,
                constants.LOGLEVEL_VV,
                constants.LOGLEVEL_VVV,
                constants.LOGLEVEL_VVVV,
            ]
        ):
            logging.addLevelName(level_value, f"DETAIL {level+1}")


def main():
    """A convenience function for constructing and running the
    :class:`CommandLine`'s run method."""
    CommandLine().run()
