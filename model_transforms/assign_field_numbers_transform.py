"""
Model Transform: AssignFieldNumbersTransform
Numbers every field of every message 1..N in declaration order. Oneof members share the
message's numbering; the synthetic value field and attributes follow the element fields.
"""
from proto_model import ProtoUnit

class AssignFieldNumbersTransform:
    def transform(self, unit: ProtoUnit) -> ProtoUnit:
        for msg in unit.messages:
            for number, field in enumerate(msg.all_fields(), start=1):
                field.number = number
        return unit
