# proto_index.py
# Reads generated .proto files back into a declaration index: package, imports, messages with
# field numbers, labels and XML bindings, enums with members and their original literals.
import logging
import os
import re
from typing import Dict, List, Optional

from lark import Token, Tree
from lark.exceptions import LarkError

from diagnostics import SchemaCompilerError
from generators.generator_utils import unescape_string
from proto_lark_parser import parse_proto_text
from proto_model import XmlBinding

logger = logging.getLogger(__name__)

_GOTAGS = re.compile(r'@gotags:\s*xml:"([^"]*)"')
_XML_LITERAL = re.compile(r'@xml:\s*"((?:\\.|[^"\\])*)"')
_TARGET_NAMESPACE = re.compile(r'Target namespace:\s*(\S+)')


class ProtoParseError(SchemaCompilerError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class IndexedField:
    def __init__(self, name: str, type_name: str, number: int, repeated: bool = False,
                 oneof: Optional[str] = None, xml_name: Optional[str] = None,
                 binding: Optional[XmlBinding] = None, line: int = -1):
        self.name = name
        self.type_name = type_name
        self.number = number
        self.repeated = repeated
        self.oneof = oneof
        self.xml_name = xml_name
        self.binding = binding
        self.line = line


class IndexedMessage:
    def __init__(self, name: str, fields: List[IndexedField], line: int = -1):
        self.name = name
        self.fields = fields
        self.line = line

    def field(self, name: str) -> Optional[IndexedField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def oneofs(self) -> Dict[str, List[IndexedField]]:
        groups: Dict[str, List[IndexedField]] = {}
        for f in self.fields:
            if f.oneof is not None:
                groups.setdefault(f.oneof, []).append(f)
        return groups


class IndexedEnumValue:
    def __init__(self, name: str, number: int, literal: Optional[str] = None):
        self.name = name
        self.number = number
        self.literal = literal


class IndexedEnum:
    def __init__(self, name: str, values: List[IndexedEnumValue], line: int = -1):
        self.name = name
        self.values = values
        self.line = line

    def literal_map(self) -> Dict[str, str]:
        """XML literal -> member name, the lookup a tag-injection pass needs."""
        return {v.literal: v.name for v in self.values if v.literal is not None}


class ProtoIndex:
    def __init__(self, file: Optional[str] = None):
        self.file = file
        self.package = ""
        self.go_package = ""
        self.target_namespace = ""
        self.imports: List[str] = []
        self.messages: Dict[str, IndexedMessage] = {}
        self.enums: Dict[str, IndexedEnum] = {}

    def describe(self) -> List[str]:
        lines = [f"package {self.package} ({self.target_namespace})"]
        for imp in self.imports:
            lines.append(f"  import {imp}")
        for msg in self.messages.values():
            lines.append(f"  message {msg.name}")
            for f in msg.fields:
                label = "repeated " if f.repeated else ""
                group = f" [oneof {f.oneof}]" if f.oneof else ""
                binding = f.binding.value if f.binding else "?"
                lines.append(f"    {f.number}: {label}{f.type_name} {f.name} <- {binding} {f.xml_name!r}{group}")
        for enum in self.enums.values():
            lines.append(f"  enum {enum.name} ({len(enum.values)} values)")
        return lines


def _binding_from_annotation(comment: str):
    match = _GOTAGS.search(comment)
    if not match:
        return None, None
    tag = match.group(1)
    if tag == ",chardata":
        return "", XmlBinding.CHARDATA
    if tag.endswith(",attr"):
        return tag[:-len(",attr")], XmlBinding.ATTRIBUTE
    return tag, XmlBinding.ELEMENT


def _comment_text(node: Tree) -> str:
    return str(node.children[0])


def _dotted(node: Tree) -> str:
    return ".".join(str(t) for t in node.children if isinstance(t, Token))


def _unwrap(node):
    # message_body / oneof_body / enum_body / header_item wrap exactly one child
    if isinstance(node, Tree) and node.data in ("message_body", "oneof_body", "enum_body", "header_item"):
        return node.children[0]
    return node


def _parse_field(node: Tree, annotation: Optional[str], oneof: Optional[str]) -> IndexedField:
    repeated = False
    type_name = ""
    names = []
    number = 0
    for child in node.children:
        if isinstance(child, Token) and child.type == "LABEL":
            repeated = str(child) == "repeated"
        elif isinstance(child, Tree) and child.data == "type_ref":
            type_name = _dotted(child.children[0])
        elif isinstance(child, Token) and child.type == "NAME":
            names.append(str(child))
        elif isinstance(child, Token) and child.type == "NUMBER":
            number = int(str(child))
    xml_name, binding = _binding_from_annotation(annotation or "")
    line = getattr(node.meta, "line", -1)
    return IndexedField(names[-1], type_name, number, repeated, oneof, xml_name, binding, line)


def _parse_fields(children, oneof: Optional[str] = None) -> List[IndexedField]:
    fields = []
    pending = None
    for child in (_unwrap(c) for c in children):
        if not isinstance(child, Tree):
            continue
        if child.data == "comment":
            pending = _comment_text(child)
        elif child.data == "field":
            fields.append(_parse_field(child, pending, oneof))
            pending = None
        elif child.data == "oneof":
            name = str(child.children[0])
            fields.extend(_parse_fields(child.children[1:], name))
            pending = None
    return fields


def _parse_enum(node: Tree) -> IndexedEnum:
    values = []
    pending = None
    for child in (_unwrap(c) for c in node.children[1:]):
        if child.data == "comment":
            match = _XML_LITERAL.search(_comment_text(child))
            pending = unescape_string(match.group(1)) if match else None
        elif child.data == "enum_value":
            name, number = child.children
            values.append(IndexedEnumValue(str(name), int(str(number)), pending))
            pending = None
    return IndexedEnum(str(node.children[0]), values, getattr(node.meta, "line", -1))


def build_proto_index(tree: Tree, file: Optional[str] = None) -> ProtoIndex:
    index = ProtoIndex(file)
    for child in (_unwrap(c) for c in tree.children):
        if child.data == "package_stmt":
            index.package = _dotted(child.children[0])
        elif child.data == "option_stmt":
            name, value = child.children
            if str(name) == "go_package":
                index.go_package = unescape_string(str(value)[1:-1])
        elif child.data == "import_stmt":
            index.imports.append(unescape_string(str(child.children[0])[1:-1]))
        elif child.data == "comment":
            match = _TARGET_NAMESPACE.search(_comment_text(child))
            if match and not index.target_namespace:
                index.target_namespace = match.group(1)
        elif child.data == "message":
            name = str(child.children[0])
            index.messages[name] = IndexedMessage(name, _parse_fields(child.children[1:]),
                                                  getattr(child.meta, "line", -1))
        elif child.data == "enum_def":
            enum = _parse_enum(child)
            index.enums[enum.name] = enum
    return index


def load_proto_text(text: str, file: Optional[str] = None) -> ProtoIndex:
    try:
        tree = parse_proto_text(text)
    except LarkError as e:
        raise ProtoParseError(file or "<text>", str(e)) from e
    return build_proto_index(tree, file)


def load_proto_file(path: str) -> ProtoIndex:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise ProtoParseError(path, f"cannot read file: {e}") from e
    return load_proto_text(text, path)


def load_proto_tree(root: str) -> Dict[str, ProtoIndex]:
    """Index every .proto file under root, keyed by its POSIX path relative to root."""
    indexes = {}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            if not name.endswith(".proto"):
                continue
            path = os.path.join(dirpath, name)
            rel = os.path.relpath(path, root).replace(os.sep, "/")
            indexes[rel] = load_proto_file(path)
    logger.debug("Indexed %d proto files under %s", len(indexes), root)
    return indexes
