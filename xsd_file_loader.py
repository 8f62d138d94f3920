# xsd_file_loader.py
# Reads XSD files into SchemaDocuments and walks include/import edges to build the per-namespace schema graph.
import logging
import os
import re
from typing import Callable, Dict, List, Optional, Set

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException

from diagnostics import SchemaCompilerError
from namespace_mapper import NamespaceConventions
from xsd_model import (
    XSD_NAMESPACE, AttributeDecl, ChoiceDecl, ComplexTypeDecl, ContentKind, ElementDecl, ImportDecl, IncludeDecl,
    NamespaceBundle, Provenance, RestrictionDecl, SchemaDocument, SimpleContentDecl, SimpleTypeDecl,
)

logger = logging.getLogger(__name__)

_XS = "{%s}" % XSD_NAMESPACE

_SHARED_VERSION_PATTERN = re.compile(r"avs_([0-9]{8})\b")


class SchemaParseError(SchemaCompilerError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def detect_shared_vocabulary_version(schema_location: str) -> str:
    """
    Extract the release date token from a shared vocabulary location such as 'avs_20200108.xsd'.
    Returns '' (latest) when the location carries no token.
    """
    if not schema_location:
        return ""
    match = _SHARED_VERSION_PATTERN.search(schema_location)
    return match.group(1) if match else ""


def _xs(local: str) -> str:
    return _XS + local


def _children(node, local: str):
    return [c for c in node if c.tag == _xs(local)]


def _local_name(qname: str) -> str:
    return qname.split(":", 1)[1] if ":" in qname else qname


# Convenience function to load one .xsd file and return a SchemaDocument

def load_xsd_file(path: str, provenance: Provenance = Provenance.PRIMARY) -> SchemaDocument:
    namespaces: Dict[str, str] = {}
    root = None
    try:
        with open(path, "rb") as f:
            for event, item in ET.iterparse(f, events=("start-ns", "start")):
                if event == "start-ns":
                    prefix, uri = item
                    namespaces.setdefault(prefix, uri)
                elif root is None:
                    root = item
    except OSError as e:
        raise SchemaParseError(path, f"cannot read file: {e}") from e
    except ET.ParseError as e:
        raise SchemaParseError(path, f"not well-formed XML: {e}") from e
    except DefusedXmlException as e:
        raise SchemaParseError(path, f"forbidden XML construct: {e}") from e

    if root is None or root.tag != _xs("schema"):
        raise SchemaParseError(path, "root element is not xs:schema")
    target_namespace = root.get("targetNamespace", "")
    if not target_namespace:
        raise SchemaParseError(path, "schema missing targetNamespace")

    return SchemaDocument(
        target_namespace=target_namespace,
        elements=[_parse_element(n) for n in _children(root, "element")],
        complex_types=[_parse_complex_type(n) for n in _children(root, "complexType")],
        simple_types=[_parse_simple_type(n) for n in _children(root, "simpleType")],
        imports=[ImportDecl(n.get("namespace", ""), n.get("schemaLocation", "")) for n in _children(root, "import")],
        includes=[IncludeDecl(n.get("schemaLocation", "")) for n in _children(root, "include")],
        file=path,
        namespaces=namespaces,
        provenance=provenance,
    )


def _parse_element(node) -> ElementDecl:
    ref = node.get("ref", "")
    inline = None
    inline_nodes = _children(node, "complexType")
    if inline_nodes and not node.get("type"):
        inline = _parse_complex_type(inline_nodes[0], name="")
    return ElementDecl(
        name=node.get("name", ""),
        type_name=node.get("type", ""),
        min_occurs=node.get("minOccurs", ""),
        max_occurs=node.get("maxOccurs", ""),
        complex_type=inline,
        ref=ref,
    )


def _parse_attribute(node) -> AttributeDecl:
    name = node.get("name", "")
    if not name and node.get("ref"):
        name = _local_name(node.get("ref"))
    return AttributeDecl(name, node.get("type", ""), node.get("use", ""))


def _parse_attributes(node) -> List[AttributeDecl]:
    return [_parse_attribute(a) for a in _children(node, "attribute")]


def _parse_choice(node, unsupported: List[str]) -> ChoiceDecl:
    elements = []
    for child in node:
        if child.tag == _xs("element"):
            elements.append(_parse_element(child))
        elif child.tag == _xs("choice"):
            # a choice of choices is still one exclusive choice
            elements.extend(_parse_choice(child, unsupported).elements)
        elif child.tag in (_xs("sequence"), _xs("group"), _xs("any")):
            unsupported.append(child.tag[len(_XS):] + " inside choice")
    return ChoiceDecl(elements, node.get("minOccurs", ""), node.get("maxOccurs", ""))


def _parse_sequence(node, unsupported: List[str]) -> list:
    particles = []
    for child in node:
        if child.tag == _xs("element"):
            particles.append(_parse_element(child))
        elif child.tag == _xs("choice"):
            particles.append(_parse_choice(child, unsupported))
        elif child.tag == _xs("sequence"):
            particles.extend(_parse_sequence(child, unsupported))
        elif child.tag in (_xs("group"), _xs("any")):
            unsupported.append(child.tag[len(_XS):])
    return particles


def _parse_complex_type(node, name: Optional[str] = None) -> ComplexTypeDecl:
    if name is None:
        name = node.get("name", "")
    unsupported: List[str] = []
    content_kind = ContentKind.EMPTY
    particles = []
    simple_content = None

    for child in node:
        if content_kind != ContentKind.EMPTY:
            break
        if child.tag in (_xs("sequence"), _xs("all")):
            content_kind = ContentKind.SEQUENCE
            particles = _parse_sequence(child, unsupported)
        elif child.tag == _xs("choice"):
            content_kind = ContentKind.CHOICE
            particles = [_parse_choice(child, unsupported)]
        elif child.tag == _xs("simpleContent"):
            derivation = _children(child, "extension") or _children(child, "restriction")
            if derivation:
                content_kind = ContentKind.SIMPLE_CONTENT
                simple_content = SimpleContentDecl(derivation[0].get("base", ""), _parse_attributes(derivation[0]))
        elif child.tag == _xs("complexContent"):
            unsupported.append("complexContent")

    return ComplexTypeDecl(
        name=name,
        content_kind=content_kind,
        particles=particles,
        simple_content=simple_content,
        attributes=_parse_attributes(node),
        unsupported=unsupported,
    )


def _parse_simple_type(node) -> SimpleTypeDecl:
    restriction = None
    restriction_nodes = _children(node, "restriction")
    if restriction_nodes:
        r = restriction_nodes[0]
        restriction = RestrictionDecl(r.get("base", ""), [e.get("value", "") for e in _children(r, "enumeration")])
    return SimpleTypeDecl(node.get("name", ""), restriction)


class SchemaGraph:
    """Everything reachable from one entry document, merged by target namespace."""

    def __init__(self, entry_file: str):
        self.entry_file = entry_file
        self.entry_namespace: Optional[str] = None
        self.bundles: Dict[str, NamespaceBundle] = {}
        self.visited_files: Set[str] = set()
        self.documents: Dict[str, SchemaDocument] = {}  # absolute path -> parsed document

    def bundle_for(self, namespace: str) -> NamespaceBundle:
        bundle = self.bundles.get(namespace)
        if bundle is None:
            bundle = NamespaceBundle(namespace)
            self.bundles[namespace] = bundle
        return bundle

    def sorted_namespaces(self) -> List[str]:
        return sorted(self.bundles)


def load_schema_graph(
    entry_path: str,
    conventions: Optional[NamespaceConventions] = None,
    version_resolver: Callable[[str], str] = detect_shared_vocabulary_version,
) -> SchemaGraph:
    """
    Load entry_path and every document reachable through xs:include and located xs:import.
    Raises SchemaParseError if any reachable file cannot be read or parsed.
    """
    conventions = conventions or NamespaceConventions()
    graph = SchemaGraph(os.path.abspath(entry_path))
    _load_recursive(graph, entry_path, Provenance.PRIMARY, conventions, version_resolver)
    logger.debug("Loaded %d schema files into %d namespaces from %s",
                 len(graph.visited_files), len(graph.bundles), graph.entry_file)
    return graph


def _load_recursive(graph: SchemaGraph, path: str, provenance: Provenance,
                    conventions: NamespaceConventions, version_resolver: Callable[[str], str]):
    abs_path = os.path.abspath(path)
    if abs_path in graph.visited_files:
        if provenance == Provenance.PRIMARY:
            _promote(graph, abs_path)
        return
    graph.visited_files.add(abs_path)

    doc = load_xsd_file(abs_path, provenance)
    logger.debug("Parsed %s (namespace %s, %s)", abs_path, doc.target_namespace, provenance.value)
    if graph.entry_namespace is None:
        graph.entry_namespace = doc.target_namespace
    graph.documents[abs_path] = doc

    bundle = graph.bundle_for(doc.target_namespace)
    bundle.add_document(doc)

    for imp in doc.imports:
        if not imp.namespace or imp.namespace == doc.target_namespace:
            continue
        bundle.imports.add(imp.namespace)
        if conventions.is_shared_vocabulary(imp.namespace):
            version = version_resolver(imp.schema_location)
            # a concrete version beats an earlier 'latest'
            if not bundle.shared_version:
                bundle.shared_version = version

    base_dir = os.path.dirname(abs_path)
    for inc in doc.includes:
        if not inc.schema_location:
            continue
        _load_recursive(graph, os.path.join(base_dir, inc.schema_location), doc.provenance, conventions,
                        version_resolver)

    for imp in doc.imports:
        if not imp.schema_location:
            continue
        # The shared vocabulary is compiled as its own spec and matched by version at emission time.
        if conventions.is_shared_vocabulary(imp.namespace):
            continue
        _load_recursive(graph, os.path.join(base_dir, imp.schema_location), Provenance.AUXILIARY,
                        conventions, version_resolver)


def _promote(graph: SchemaGraph, abs_path: str):
    """
    A file first reached through an import can later turn out to be in the entry document's
    include closure. Mark it and everything it includes PRIMARY.
    """
    doc = graph.documents.get(abs_path)
    if doc is None or doc.provenance == Provenance.PRIMARY:
        return
    doc.provenance = Provenance.PRIMARY
    logger.debug("Promoted %s to primary", abs_path)
    base_dir = os.path.dirname(abs_path)
    for inc in doc.includes:
        if inc.schema_location:
            _promote(graph, os.path.abspath(os.path.join(base_dir, inc.schema_location)))
