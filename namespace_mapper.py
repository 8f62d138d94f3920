"""
namespace_mapper.py
Deterministic mapping from XML target namespaces to proto units (package name, runtime import path, file path).

    http://ddex.net/xml/ern/43      -> ddex.ern.v43      -> ddex/ern/v43/v43.proto
    http://ddex.net/xml/avs/avs     -> ddex.avs.v<ver>   -> ddex/avs/v<ver>/v<ver>.proto
    http://example.com/schemas/2    -> com.example.schemas.v2

The file path is a pure function of the unit name, so two independent passes that compute
the same unit name always agree on the import path.
"""
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

_DIGITS = re.compile(r"[0-9]+")
_INVALID_PACKAGE_CHARS = re.compile(r"[^A-Za-z0-9_]")


class NamespaceConventions:
    """Naming conventions of the schema family being compiled. Defaults describe DDEX."""

    def __init__(
        self,
        host: str = "ddex.net",
        schema_root: str = "xml",
        unit_prefix: str = "ddex",
        shared_segments: Iterable[str] = ("avs", "allowed-value-sets", "allowed_value_sets"),
        shared_namespaces: Iterable[str] = ("http://ddex.net/xml/avs/avs", "http://ddex.net/xml/allowed-value-sets"),
        shared_spec_name: str = "avs",
        shared_prefix: str = "avs",
        runtime_root: str = "github.com/alecsavvy/ddex-go/gen",
    ):
        self.host = host
        self.schema_root = schema_root
        self.unit_prefix = unit_prefix
        self.shared_segments = set(shared_segments)
        self.shared_namespaces = set(shared_namespaces)
        self.shared_spec_name = shared_spec_name
        self.shared_prefix = shared_prefix
        self.runtime_root = runtime_root.rstrip("/")

    def is_shared_vocabulary(self, namespace: str) -> bool:
        return namespace in self.shared_namespaces

    def shared_unit_name(self, version: Optional[str] = None) -> str:
        base = f"{self.unit_prefix}.{self.shared_spec_name}"
        return f"{base}.v{version}" if version else base


class SchemaSpec:
    """One named, versioned member of the schema family, e.g. ern 43."""

    def __init__(self, name: str, version: str, main_file: str):
        self.name = name
        self.version = version
        self.main_file = main_file

    def __repr__(self):
        return f"SchemaSpec(name={self.name!r}, version={self.version!r}, main_file={self.main_file!r})"

    def __str__(self):
        return f"{self.name} v{self.version}"


class UnitInfo:
    def __init__(self, unit_name: str, runtime_path: str, file_path: str):
        self._unit_name = unit_name
        self._runtime_path = runtime_path
        self._file_path = file_path

    @property
    def unit_name(self) -> str:
        return self._unit_name

    @property
    def runtime_path(self) -> str:
        return self._runtime_path

    @property
    def file_path(self) -> str:
        return self._file_path

    def __eq__(self, other):
        if not isinstance(other, UnitInfo):
            return NotImplemented
        return (self.unit_name, self.runtime_path, self.file_path) == (other.unit_name, other.runtime_path, other.file_path)

    def __hash__(self):
        return hash((self.unit_name, self.runtime_path, self.file_path))

    def __repr__(self):
        return f"UnitInfo(unit_name={self.unit_name!r}, runtime_path={self.runtime_path!r}, file_path={self.file_path!r})"


def split_namespace(namespace: str) -> Tuple[str, List[str]]:
    """Split a namespace URI into its host and non-empty path segments."""
    parsed = urlparse(namespace)
    if parsed.netloc:
        return parsed.hostname or parsed.netloc, [p for p in parsed.path.split("/") if p]
    # urn:foo:bar and other opaque identifiers
    return "", [p for p in re.split(r"[:/]", namespace) if p]


def _sanitize_segment(segment: str) -> str:
    segment = _INVALID_PACKAGE_CHARS.sub("_", segment)
    if segment and segment[0].isdigit():
        segment = "v" + segment if _DIGITS.fullmatch(segment) else "x" + segment
    return segment


def reverse_host(host: str) -> str:
    if not host:
        return "unknown"
    return ".".join(reversed(host.split(".")))


def _generic_unit_name(host: str, parts: List[str]) -> str:
    segments = reverse_host(host).split(".") + list(parts)
    return ".".join(s for s in (_sanitize_segment(seg) for seg in segments) if s)


def namespace_to_unit_name(
    namespace: str,
    spec: SchemaSpec,
    conventions: NamespaceConventions,
    entry_namespace: Optional[str] = None,
    shared_version: Optional[str] = None,
) -> str:
    host, parts = split_namespace(namespace)

    if host == conventions.host and len(parts) >= 2 and parts[0] == conventions.schema_root:
        if parts[1] in conventions.shared_segments:
            if spec.name == conventions.shared_spec_name:
                return conventions.shared_unit_name(spec.version)
            return conventions.shared_unit_name(shared_version)
        if len(parts) >= 3 and _DIGITS.fullmatch(parts[2]):
            return f"{conventions.unit_prefix}.{_sanitize_segment(parts[1])}.v{parts[2]}"

    # Entry documents whose namespace does not follow the family pattern take the name and version of the SchemaSpec.
    if entry_namespace is not None and namespace == entry_namespace:
        version = spec.version.lower()
        if version.startswith("v"):
            version = version[1:]
        return f"{conventions.unit_prefix}.{_sanitize_segment(spec.name)}.v{_INVALID_PACKAGE_CHARS.sub('_', version)}"

    return _generic_unit_name(host, parts)


def unit_to_file_path(unit_name: str) -> str:
    parts = [p for p in unit_name.split(".") if p]
    if not parts:
        return "unknown.proto"
    return posixpath.join(*parts, parts[-1] + ".proto")


def unit_to_runtime_path(unit_name: str, conventions: NamespaceConventions) -> str:
    return conventions.runtime_root + "/" + unit_name.replace(".", "/")


def unit_info_for(unit_name: str, conventions: NamespaceConventions) -> UnitInfo:
    return UnitInfo(unit_name, unit_to_runtime_path(unit_name, conventions), unit_to_file_path(unit_name))


def build_unit_map(
    namespaces: Iterable[str],
    spec: SchemaSpec,
    conventions: NamespaceConventions,
    entry_namespace: Optional[str] = None,
) -> Dict[str, UnitInfo]:
    """Compute the UnitInfo of every namespace, in sorted namespace order."""
    units = {}
    for ns in sorted(namespaces):
        units[ns] = unit_info_for(namespace_to_unit_name(ns, spec, conventions, entry_namespace), conventions)
    return units
