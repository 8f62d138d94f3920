#!/usr/bin/env python3
"""
xsd2proto

This script compiles a family of DDEX XSD schemas into proto3 files, one per XML target
namespace. Every generated field carries a `// @gotags: xml:"..."` comment naming the XML
element or attribute it came from, so a later tag-injection pass can add XML serialization.

Usage:
    python xsd2proto.py [generate] [--xsd-root <dir>] [--output <dir>] [--spec name:version:file ...]
                        [--go-package-root <path>] [--verbose]
    python xsd2proto.py inspect <proto file or directory> [...]

Commands:
    generate        : Compile every spec (default command)
    inspect         : Print the declarations found in generated .proto files

Arguments (generate):
    --xsd-root, -x  : Directory holding the schemas (default: xsd)
                      Shared vocabulary schemas live at <xsd-root>/<file>,
                      every other spec at <xsd-root>/<name>v<version>/<file>
    --output, -o    : Directory where .proto files will be generated (default: proto)
    --spec, -s      : name:version:file, may be repeated (default: the DDEX release list)
                      Shared vocabulary specs should come first so later specs can import them
    --go-package-root : Prefix of every go_package option
    --verbose, -v   : Enable debug logging

Environment:
    XSD2PROTO_XSD_ROOT, XSD2PROTO_OUTPUT_DIR, XSD2PROTO_GO_PACKAGE_ROOT and XSD2PROTO_VERBOSE
    override the matching arguments.

Example:
    python xsd2proto.py
    python xsd2proto.py generate --xsd-root ./xsd --output ./proto --spec avs:latest:allowed-value-sets.xsd --spec ern:43:release-notification.xsd
    python xsd2proto.py inspect ./proto/ddex/ern/v43/v43.proto
"""

import argparse
import logging
import os
import sys
from typing import Dict, List, Optional, Tuple

from bundle_to_proto_model import BundleToProtoModel
from diagnostics import Diagnostics, SchemaCompilerError
from generators.proto3_generator import generate_proto3_code
from namespace_mapper import NamespaceConventions, SchemaSpec, UnitInfo, build_unit_map
from proto_index import load_proto_file, load_proto_tree
from proto_model import ProtoUnit
from xsd_file_loader import load_schema_graph

logger = logging.getLogger(__name__)

# Shared vocabulary versions first so they are available for imports
DEFAULT_SPECS = [
    SchemaSpec("avs", "latest", "allowed-value-sets.xsd"),
    SchemaSpec("avs", "20200108", "avs_20200108.xsd"),
    SchemaSpec("ern", "43", "release-notification.xsd"),
    SchemaSpec("ern", "432", "release-notification.xsd"),
    SchemaSpec("mead", "11", "media-enrichment-and-description.xsd"),
    SchemaSpec("pie", "10", "party-identification-and-enrichment.xsd"),
    SchemaSpec("ern", "383", "release-notification.xsd"),
]

_TRUE_VALUES = ("1", "true", "yes", "on")


class SchemaInputMissingError(SchemaCompilerError):
    def __init__(self, message: str, paths: List[str]):
        super().__init__(message)
        self.paths = paths


class CompilationResult:
    def __init__(self, spec: SchemaSpec, units: List[ProtoUnit], files: List[str], diagnostics: Diagnostics):
        self.spec = spec
        self.units = units
        self.files = files
        self.diagnostics = diagnostics


class SchemaCompiler:
    """
    Compiles specs one at a time. Each spec's files are only written after every namespace of
    that spec has been emitted, so a failing spec leaves nothing behind. Shared vocabulary units
    compiled by this instance are remembered by version for the specs that follow.
    """

    def __init__(self, xsd_root: str = "xsd", output_root: str = "proto",
                 conventions: Optional[NamespaceConventions] = None, verbose: bool = False):
        self.xsd_root = xsd_root
        self.output_root = output_root
        self.conventions = conventions or NamespaceConventions()
        self.verbose = verbose
        self.shared_units: Dict[str, UnitInfo] = {}

    def is_shared_spec(self, spec: SchemaSpec) -> bool:
        return spec.name == self.conventions.shared_spec_name

    def spec_directory(self, spec: SchemaSpec) -> str:
        if self.is_shared_spec(spec):
            return self.xsd_root
        return os.path.join(self.xsd_root, f"{spec.name}v{spec.version}")

    def candidate_paths(self, spec: SchemaSpec) -> List[str]:
        directory = self.spec_directory(spec)
        paths = [os.path.join(directory, spec.main_file)]
        if not self.is_shared_spec(spec):
            paths.append(os.path.join(directory, spec.main_file.replace("-", "_")))
        return paths

    def entry_path(self, spec: SchemaSpec) -> str:
        paths = self.candidate_paths(spec)
        for path in paths:
            if os.path.isfile(path):
                return path
        return paths[0]

    def validate_spec(self, spec: SchemaSpec) -> str:
        """
        Check that the input files of spec exist and return its entry path.

        Raises:
            SchemaInputMissingError: naming the missing directory or every attempted file
        """
        directory = self.spec_directory(spec)
        if not self.is_shared_spec(spec) and not os.path.isdir(directory):
            raise SchemaInputMissingError(f"schema directory {directory} does not exist", [directory])
        paths = self.candidate_paths(spec)
        for path in paths:
            if os.path.isfile(path):
                return path
        if len(paths) == 1:
            raise SchemaInputMissingError(f"shared vocabulary schema not found: {paths[0]}", paths)
        raise SchemaInputMissingError(f"main schema not found; tried {' and '.join(paths)}", paths)

    def compile_spec(self, spec: SchemaSpec) -> CompilationResult:
        logger.info("Converting %s to protobuf...", spec)
        entry = self.validate_spec(spec)
        diagnostics = Diagnostics()

        graph = load_schema_graph(entry, self.conventions)
        units = build_unit_map(graph.sorted_namespaces(), spec, self.conventions, graph.entry_namespace)
        emitter = BundleToProtoModel(units, self.conventions, self.shared_units, diagnostics)

        rendered = []
        for ns in graph.sorted_namespaces():
            unit = emitter.process(graph.bundles[ns], units[ns])
            rendered.append((unit, generate_proto3_code(unit)))

        files = self._write_all(rendered)

        if self.is_shared_spec(spec) and graph.entry_namespace in units:
            self.shared_units[spec.version] = units[graph.entry_namespace]
        if len(diagnostics):
            logger.info("%s: %d diagnostics", spec, len(diagnostics))
        return CompilationResult(spec, [unit for unit, _ in rendered], files, diagnostics)

    def _write_all(self, rendered: List[Tuple[ProtoUnit, str]]) -> List[str]:
        """
        Stage every file of one spec next to its target, then move them into place.
        A failed write removes what was staged and leaves existing output untouched.
        """
        staged: List[Tuple[str, str]] = []
        try:
            for unit, content in rendered:
                out_file = os.path.join(self.output_root, *unit.info.file_path.split("/"))
                tmp_file = out_file + ".tmp"
                os.makedirs(os.path.dirname(out_file), exist_ok=True)
                staged.append((tmp_file, out_file))
                with open(tmp_file, "w", encoding="utf-8", newline="\n") as f:
                    f.write(content)
            for tmp_file, out_file in staged:
                os.replace(tmp_file, out_file)
        except OSError as e:
            for tmp_file, _ in staged:
                if os.path.exists(tmp_file):
                    os.remove(tmp_file)
            raise SchemaCompilerError(f"cannot write output under {self.output_root}: {e}") from e
        for _, out_file in staged:
            logger.info("Generated %s", out_file)
        return [out_file for _, out_file in staged]

    def run(self, specs: List[SchemaSpec]) -> List[CompilationResult]:
        """Compile specs in order, stopping at the first fatal error."""
        return [self.compile_spec(spec) for spec in specs]


def parse_spec_argument(value: str) -> SchemaSpec:
    parts = value.split(":")
    if len(parts) != 3 or not all(parts):
        raise argparse.ArgumentTypeError(f"invalid spec '{value}' (expected name:version:file)")
    return SchemaSpec(*parts)


def parse_arguments(argv: Optional[List[str]] = None):
    """
    Parse command line arguments. 'generate' is assumed when no command is given.

    Returns:
        argparse.Namespace: Parsed command line arguments
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in ("generate", "inspect", "-h", "--help"):
        argv.insert(0, "generate")

    parser = argparse.ArgumentParser(
        description="Compile DDEX XSD schemas into proto3 files",
        formatter_class=argparse.RawTextHelpFormatter
    )
    subparsers = parser.add_subparsers(dest="command")

    generate = subparsers.add_parser("generate", help="Compile schemas into .proto files")
    generate.add_argument('--xsd-root', '-x', default="xsd", help='Directory holding the schemas')
    generate.add_argument('--output', '-o', default="proto", help='Directory where .proto files will be generated')
    generate.add_argument('--spec', '-s', action='append', type=parse_spec_argument,
                          help='name:version:file, may be repeated')
    generate.add_argument('--go-package-root', help='Prefix of every go_package option')
    generate.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    inspect = subparsers.add_parser("inspect", help="Print the declarations of generated .proto files")
    inspect.add_argument('paths', nargs='+', help='.proto files or directories')
    inspect.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    return parser.parse_args(argv)


def _inspect(paths: List[str]):
    for path in paths:
        if os.path.isdir(path):
            indexes = load_proto_tree(path).values()
        else:
            indexes = [load_proto_file(path)]
        for index in indexes:
            print(index.file)
            for line in index.describe():
                print(f"  {line}")


def main(argv: Optional[List[str]] = None):
    """
    Main entry point of the script.
    """
    args = parse_arguments(argv)

    verbose = args.verbose or os.environ.get('XSD2PROTO_VERBOSE', '').lower() in _TRUE_VALUES
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        if args.command == "inspect":
            _inspect(args.paths)
            return

        # Override with environment variables if set
        xsd_root = os.environ.get('XSD2PROTO_XSD_ROOT', args.xsd_root)
        output_dir = os.environ.get('XSD2PROTO_OUTPUT_DIR', args.output)
        go_package_root = os.environ.get('XSD2PROTO_GO_PACKAGE_ROOT', args.go_package_root)

        conventions = NamespaceConventions(runtime_root=go_package_root) if go_package_root else NamespaceConventions()
        compiler = SchemaCompiler(xsd_root, output_dir, conventions, verbose)
        compiler.run(args.spec or DEFAULT_SPECS)
    except SchemaCompilerError as e:
        logger.error("%s", e)
        sys.exit(1)

    if args.command == "generate":
        logger.info("Schema conversion completed successfully.")


if __name__ == '__main__':
    main()
