"""
Model Transform: AssignEnumValuesTransform
Puts the <PREFIX>_UNSPECIFIED = 0 sentinel first in every enum and numbers the remaining
members sequentially from 1, so generators do not need to handle value assignment logic.
"""
from proto_model import ProtoEnum, ProtoEnumValue, ProtoUnit

class AssignEnumValuesTransform:
    def transform(self, unit: ProtoUnit) -> ProtoUnit:
        for enum in unit.enums:
            self._assign_enum_values(enum)
        return unit

    def _assign_enum_values(self, enum: ProtoEnum):
        members = [v for v in enum.values if v.name != enum.sentinel_name]
        for number, value in enumerate(members, start=1):
            value.number = number
        enum.values = [ProtoEnumValue(enum.sentinel_name, 0)] + members
