"""
Model transform that turns enumeration literals into enum member names.
Each literal is sanitized into an UPPER_SNAKE token and prefixed with the enum's prefix.
proto3 enum members share the package scope, so names are unique across the whole unit:
a member whose name is already taken, by this enum or an earlier one, is dropped (first wins).
Every <PREFIX>_UNSPECIFIED name is reserved for its enum's sentinel.
"""
from typing import Optional, Set
from diagnostics import DiagnosticKind, Diagnostics
from proto_model import ProtoEnum, ProtoEnumValue, ProtoUnit
from type_translator import to_enum_value_token

class PrefixEnumValueNamesTransform:
    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self.diagnostics = diagnostics

    def transform(self, unit: ProtoUnit) -> ProtoUnit:
        taken = {enum.sentinel_name for enum in unit.enums}
        for enum in unit.enums:
            self._prefix_values(enum, taken, unit.target_namespace)
        return unit

    def _prefix_values(self, enum: ProtoEnum, taken: Set[str], namespace: str):
        values = []
        for literal in enum.literals:
            name = f"{enum.prefix}_{to_enum_value_token(literal)}"
            if name in taken:
                if self.diagnostics is not None:
                    self.diagnostics.report(
                        DiagnosticKind.NAME_COLLISION,
                        f"{enum.name}: literal {literal!r} collides with existing member {name}, skipped",
                        namespace,
                    )
                continue
            taken.add(name)
            values.append(ProtoEnumValue(name, literal=literal))
        enum.values = values
