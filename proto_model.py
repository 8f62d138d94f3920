"""
proto_model.py
Generator-ready representation of one proto3 compilation unit. All type references are resolved
to proto type expressions; names, numbers and enum members are filled in by the model transforms.
"""
from enum import Enum
from typing import Iterator, List, Optional, Union

from namespace_mapper import UnitInfo
from xsd_model import Provenance


class XmlBinding(Enum):
    ELEMENT = "element"
    ATTRIBUTE = "attribute"
    CHARDATA = "chardata"


def xml_tag(xml_name: str, binding: XmlBinding) -> str:
    if binding == XmlBinding.ATTRIBUTE:
        return f'xml:"{xml_name},attr"'
    if binding == XmlBinding.CHARDATA:
        return 'xml:",chardata"'
    return f'xml:"{xml_name}"'


class ProtoField:
    def __init__(self, name: str, type_name: str, xml_name: str, binding: XmlBinding = XmlBinding.ELEMENT,
                 repeated: bool = False, number: Optional[int] = None):
        self.name = name
        self.type_name = type_name
        self.xml_name = xml_name  # original XSD name, never the proto field name
        self.binding = binding
        self.repeated = repeated
        self.number = number

    @property
    def annotation(self) -> str:
        return f"@gotags: {xml_tag(self.xml_name, self.binding)}"

    def __repr__(self):
        return f"ProtoField(name={self.name!r}, type_name={self.type_name!r}, number={self.number!r}, repeated={self.repeated!r})"


class ProtoOneof:
    def __init__(self, name: str, fields: List[ProtoField]):
        self.name = name
        self.fields = fields


MessageItem = Union[ProtoField, ProtoOneof]


class ProtoMessage:
    def __init__(self, name: str, items: Optional[List[MessageItem]] = None, provenance: Provenance = Provenance.PRIMARY):
        self.name = name
        self.items = items if items is not None else []
        self.provenance = provenance

    def all_fields(self) -> Iterator[ProtoField]:
        """Every field in declaration order, oneof members included."""
        for item in self.items:
            if isinstance(item, ProtoOneof):
                yield from item.fields
            else:
                yield item

    @property
    def oneofs(self) -> List[ProtoOneof]:
        return [item for item in self.items if isinstance(item, ProtoOneof)]


class ProtoEnumValue:
    def __init__(self, name: str, number: Optional[int] = None, literal: Optional[str] = None):
        self.name = name
        self.number = number
        self.literal = literal  # original enumeration text; None for the sentinel


class ProtoEnum:
    def __init__(self, name: str, prefix: str, literals: List[str],
                 values: Optional[List[ProtoEnumValue]] = None, provenance: Provenance = Provenance.PRIMARY):
        self.name = name
        self.prefix = prefix
        self.literals = literals
        self.values = values if values is not None else []
        self.provenance = provenance

    @property
    def sentinel_name(self) -> str:
        return f"{self.prefix}_UNSPECIFIED"


class ProtoUnit:
    def __init__(self, info: UnitInfo, target_namespace: str, dependencies: Optional[List[str]] = None,
                 messages: Optional[List[ProtoMessage]] = None, enums: Optional[List[ProtoEnum]] = None):
        self.info = info
        self.target_namespace = target_namespace
        self.dependencies = dependencies if dependencies is not None else []  # imported file paths
        self.messages = messages if messages is not None else []
        self.enums = enums if enums is not None else []

    @property
    def package(self) -> str:
        return self.info.unit_name

    def find_message(self, name: str) -> Optional[ProtoMessage]:
        for msg in self.messages:
            if msg.name == name:
                return msg
        return None

    def find_enum(self, name: str) -> Optional[ProtoEnum]:
        for enum in self.enums:
            if enum.name == name:
                return enum
        return None
