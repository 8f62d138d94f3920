"""
xsd_model.py
A raw representation of parsed XSD documents and of the per-namespace bundles they are merged into.
Nothing here is resolved: type references stay as the qualified names written in the schema.
"""
from enum import Enum
from typing import Dict, List, Optional, Set, Union

XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"


class Provenance(Enum):
    PRIMARY = "primary"      # entry document and its include closure
    AUXILIARY = "auxiliary"  # anything reached through an import


class ContentKind(Enum):
    EMPTY = "empty"
    SEQUENCE = "sequence"
    CHOICE = "choice"
    SIMPLE_CONTENT = "simple_content"


class AttributeDecl:
    def __init__(self, name: str, type_name: str = "", use: str = ""):
        self.name = name
        self.type_name = type_name
        self.use = use

    @property
    def is_required(self) -> bool:
        return self.use == "required"


class ElementDecl:
    def __init__(self, name: str, type_name: str = "", min_occurs: str = "", max_occurs: str = "",
                 complex_type: Optional['ComplexTypeDecl'] = None, ref: str = ""):
        self.name = name
        self.type_name = type_name
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs
        self.complex_type = complex_type  # inline anonymous type, never together with type_name
        self.ref = ref

    @property
    def is_repeated(self) -> bool:
        return self.max_occurs == "unbounded"


class ChoiceDecl:
    def __init__(self, elements: List[ElementDecl], min_occurs: str = "", max_occurs: str = ""):
        self.elements = elements
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs


class SimpleContentDecl:
    def __init__(self, base: str, attributes: List[AttributeDecl]):
        self.base = base
        self.attributes = attributes


class ComplexTypeDecl:
    def __init__(self, name: str, content_kind: ContentKind = ContentKind.EMPTY,
                 particles: Optional[List[Union[ElementDecl, ChoiceDecl]]] = None,
                 simple_content: Optional[SimpleContentDecl] = None,
                 attributes: Optional[List[AttributeDecl]] = None,
                 unsupported: Optional[List[str]] = None):
        self.name = name  # empty for anonymous types
        self.content_kind = content_kind
        # SEQUENCE: elements and nested choices in document order. CHOICE: exactly one ChoiceDecl.
        self.particles = particles or []
        self.simple_content = simple_content
        self.attributes = attributes or []
        self.unsupported = unsupported or []  # constructs seen but not translated, e.g. 'complexContent'

    @property
    def choice(self) -> Optional[ChoiceDecl]:
        if self.content_kind == ContentKind.CHOICE and self.particles:
            return self.particles[0]
        return None


class RestrictionDecl:
    def __init__(self, base: str, enumerations: List[str]):
        self.base = base
        self.enumerations = enumerations


class SimpleTypeDecl:
    def __init__(self, name: str, restriction: Optional[RestrictionDecl] = None):
        self.name = name
        self.restriction = restriction

    @property
    def is_enumeration(self) -> bool:
        return bool(self.name) and self.restriction is not None and len(self.restriction.enumerations) > 0


class ImportDecl:
    def __init__(self, namespace: str, schema_location: str = ""):
        self.namespace = namespace
        self.schema_location = schema_location


class IncludeDecl:
    def __init__(self, schema_location: str):
        self.schema_location = schema_location


class SchemaDocument:
    def __init__(self, target_namespace: str, elements: List[ElementDecl], complex_types: List[ComplexTypeDecl],
                 simple_types: List[SimpleTypeDecl], imports: List[ImportDecl], includes: List[IncludeDecl],
                 file: str, namespaces: Optional[Dict[str, str]] = None,
                 provenance: Provenance = Provenance.PRIMARY):
        self.target_namespace = target_namespace
        self.elements = elements
        self.complex_types = complex_types
        self.simple_types = simple_types
        self.imports = imports
        self.includes = includes
        self.file = file
        self.namespaces = namespaces or {}  # prefix -> namespace URI, '' for the default namespace
        self.provenance = provenance


class NamespaceBundle:
    """
    All declarations sharing one target namespace. Documents are appended in load order;
    same-named declarations from several files are all kept and only deduplicated at emission time.
    """
    def __init__(self, target_namespace: str):
        self.target_namespace = target_namespace
        self.elements: List[ElementDecl] = []
        self.complex_types: List[ComplexTypeDecl] = []
        self.simple_types: List[SimpleTypeDecl] = []
        self.imports: Set[str] = set()
        self.namespaces: Dict[str, str] = {}
        self.shared_version: Optional[str] = None  # None: no shared vocabulary import, '': latest
        self._origin: Dict[int, SchemaDocument] = {}

    def add_document(self, doc: SchemaDocument):
        for decl in doc.elements + doc.complex_types + doc.simple_types:
            self._origin[id(decl)] = doc
        self.elements.extend(doc.elements)
        self.complex_types.extend(doc.complex_types)
        self.simple_types.extend(doc.simple_types)
        for prefix, uri in doc.namespaces.items():
            self.namespaces.setdefault(prefix, uri)

    def provenance_of(self, decl) -> Provenance:
        doc = self._origin.get(id(decl))
        return doc.provenance if doc is not None else Provenance.PRIMARY

    def namespaces_of(self, decl) -> Dict[str, str]:
        """Prefix map in scope where decl was written, falling back to the merged map."""
        doc = self._origin.get(id(decl))
        return doc.namespaces if doc is not None else self.namespaces
