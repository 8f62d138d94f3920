"""
type_translator.py
Maps XSD type names onto proto3 types, and XSD identifiers onto proto naming conventions.
"""
import logging
import re
from typing import Dict, Optional, Set, Tuple

from diagnostics import DiagnosticKind, Diagnostics
from namespace_mapper import NamespaceConventions, UnitInfo
from xsd_model import XSD_NAMESPACE

logger = logging.getLogger(__name__)

XSD_PREFIXES = {"xs", "xsd"}

# Keyed by local name; the prefix is not consulted so that family-specific
# aliases such as ddexC:ddex_IsoDate map the same way as xs:date.
PRIMITIVE_TYPES = {
    "string": "string",
    "normalizedString": "string",
    "token": "string",
    "anyURI": "string",
    "NMTOKEN": "string",
    "int": "int32",
    "integer": "int32",
    "positiveInteger": "int32",
    "PositiveInteger": "int32",
    "long": "int64",
    "boolean": "bool",
    # decimal text is kept as-is to avoid lossy conversion
    "decimal": "string",
    "float": "string",
    "double": "double",
    # ISO 8601 literals
    "dateTime": "string",
    "date": "string",
    "time": "string",
    "duration": "string",
    "gYear": "string",
    "GYear": "string",
    "ddex_IsoDate": "string",
    "Ddex_IsoDate": "string",
    "base64Binary": "bytes",
}

# Only recognised when the prefix resolves to the XML Schema namespace, since
# names like Name or ID are also common user type names.
XSD_BUILTIN_TYPES = {
    "NMTOKENS": "string",
    "language": "string",
    "Name": "string",
    "NCName": "string",
    "ID": "string",
    "IDREF": "string",
    "IDREFS": "string",
    "QName": "string",
    "anySimpleType": "string",
    "anyType": "string",
    "gYearMonth": "string",
    "gMonthDay": "string",
    "nonNegativeInteger": "int32",
    "negativeInteger": "int32",
    "nonPositiveInteger": "int32",
    "short": "int32",
    "byte": "int32",
    "unsignedInt": "int32",
    "unsignedShort": "int32",
    "unsignedByte": "int32",
    "unsignedLong": "int64",
    "hexBinary": "bytes",
}

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")
_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_ENUM_REPLACEMENTS = [
    ("-", "_"), (" ", "_"), (".", "_"), ("/", "_"), ("+", "_PLUS_"),
    ("(", "_"), (")", "_"), ("'", "_"), ('"', "_"), ("&", "_AND_"),
]
_ENUM_INVALID = re.compile(r"[^A-Z0-9_]")


# --- Naming ---

def split_qname(qname: str) -> Tuple[str, str]:
    if ":" in qname:
        prefix, local = qname.split(":", 1)
        return prefix, local
    return "", qname


def to_message_name(name: str) -> str:
    """PascalCase message/enum name with separators removed: 'ddex_IsoDate' -> 'DdexIsoDate'."""
    if not name:
        return ""
    return _NON_ALNUM.sub("", name[0].upper() + name[1:])


def to_field_name(name: str) -> str:
    """snake_case field name, acronym aware: 'IsDefault' -> 'is_default', 'PartyID' -> 'party_id'."""
    s = _NON_ALNUM.sub("_", name)
    s = _WORD_BOUNDARY.sub("_", s).lower()
    s = re.sub(r"_+", "_", s).strip("_")
    if s and s[0].isdigit():
        s = "f_" + s
    return s


def to_enum_prefix(name: str) -> str:
    return to_field_name(name).upper()


def to_enum_value_token(value: str) -> str:
    """Turn an enumeration literal into an UPPER_SNAKE member token: 'FAILED-RETRY' -> 'FAILED_RETRY'."""
    result = value.upper()
    for old, new in _ENUM_REPLACEMENTS:
        result = result.replace(old, new)
    result = _ENUM_INVALID.sub("", result)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        return "UNKNOWN"
    if result[0].isdigit():
        result = "E_" + result
    return result


# --- Type mapping ---

class TranslatedType:
    def __init__(self, proto_type: str, namespace: Optional[str] = None):
        self.proto_type = proto_type
        self.namespace = namespace  # set only for cross-unit references

    @property
    def is_cross_unit(self) -> bool:
        return self.namespace is not None

    def __repr__(self):
        return f"TranslatedType(proto_type={self.proto_type!r}, namespace={self.namespace!r})"


class TypeTranslator:
    """
    Resolves qualified XSD type names for one namespace bundle.

    units maps every known namespace to its UnitInfo. local_names, when given, lists the
    message/enum names the current unit will declare; a local reference to anything else is
    reported as an unresolved type. simple_bases maps local simple types that are not
    enumerations to (base qname, prefix map) so that they collapse to their primitive base.
    """

    def __init__(self, namespace: str, units: Dict[str, UnitInfo],
                 conventions: Optional[NamespaceConventions] = None,
                 diagnostics: Optional[Diagnostics] = None,
                 local_names: Optional[Set[str]] = None,
                 simple_bases: Optional[Dict[str, Tuple[str, Dict[str, str]]]] = None):
        self.namespace = namespace
        self.units = units
        self.conventions = conventions or NamespaceConventions()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.local_names = local_names
        self.simple_bases = simple_bases or {}

    def translate(self, qualified_name: str, prefixes: Optional[Dict[str, str]] = None,
                  context: str = "") -> TranslatedType:
        return self._translate(qualified_name, prefixes or {}, context, set())

    def _translate(self, qualified_name: str, prefixes: Dict[str, str], context: str, seen: Set[str]) -> TranslatedType:
        if not qualified_name:
            return TranslatedType("string")
        prefix, local = split_qname(qualified_name)
        if local in PRIMITIVE_TYPES:
            return TranslatedType(PRIMITIVE_TYPES[local])

        uri = prefixes.get(prefix)
        if uri == XSD_NAMESPACE or (uri is None and prefix in XSD_PREFIXES):
            if local in XSD_BUILTIN_TYPES:
                return TranslatedType(XSD_BUILTIN_TYPES[local])
            self._unresolved(qualified_name, context, "unknown built-in type, using string")
            return TranslatedType("string")

        # Shared vocabulary types are enums; message fields keep the literal XML text.
        if prefix == self.conventions.shared_prefix or (uri and self.conventions.is_shared_vocabulary(uri)):
            return TranslatedType("string")

        message_name = to_message_name(local)
        if uri == self.namespace or (uri is None and not prefix):
            return self._local(local, message_name, prefixes, qualified_name, context, seen)
        if uri and uri in self.units and uri != self.namespace:
            return self._cross_unit(uri, message_name)

        if prefix and prefix not in XSD_PREFIXES:
            for ns in sorted(self.units):
                if prefix.lower() in ns.lower():
                    if ns == self.namespace:
                        return self._local(local, message_name, prefixes, qualified_name, context, seen)
                    return self._cross_unit(ns, message_name)

        self._unresolved(qualified_name, context, "treating as local message")
        return TranslatedType(message_name)

    def _local(self, local: str, message_name: str, prefixes: Dict[str, str], qualified_name: str,
               context: str, seen: Set[str]) -> TranslatedType:
        base = self.simple_bases.get(local)
        if base is not None and local not in seen:
            seen.add(local)
            base_qname, base_prefixes = base
            return self._translate(base_qname, base_prefixes, context, seen)
        if self.local_names is not None and message_name not in self.local_names:
            self._unresolved(qualified_name, context, "treating as local message")
        return TranslatedType(message_name)

    def _cross_unit(self, namespace: str, message_name: str) -> TranslatedType:
        return TranslatedType(f"{self.units[namespace].unit_name}.{message_name}", namespace)

    def _unresolved(self, qualified_name: str, context: str, action: str):
        where = f" in {context}" if context else ""
        self.diagnostics.report(
            DiagnosticKind.UNRESOLVED_TYPE,
            f"Unmapped XSD type '{qualified_name}'{where}: {action}",
            self.namespace,
        )
