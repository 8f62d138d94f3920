"""
UniqueFieldNamesTransform: makes every field name (and oneof name) unique within its message.
The first occurrence keeps its name; later ones get _1, _2, ... in declaration order.
"""
from typing import Dict, Optional
from diagnostics import DiagnosticKind, Diagnostics
from proto_model import ProtoMessage, ProtoOneof, ProtoUnit


def unique_name(base: str, used: Dict[str, int]) -> str:
    if base not in used:
        used[base] = 0
        return base
    count = used[base]
    candidate = base
    while candidate in used:
        count += 1
        candidate = f"{base}_{count}"
    used[base] = count
    used[candidate] = 0
    return candidate


class UniqueFieldNamesTransform:
    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self.diagnostics = diagnostics

    def transform(self, unit: ProtoUnit) -> ProtoUnit:
        for msg in unit.messages:
            self._process_message(msg, unit)
        return unit

    def _process_message(self, msg: ProtoMessage, unit: ProtoUnit):
        used: Dict[str, int] = {}
        for item in msg.items:
            if isinstance(item, ProtoOneof):
                item.name = self._rename(msg, item.name, used, unit)
                for field in item.fields:
                    field.name = self._rename(msg, field.name, used, unit)
            else:
                item.name = self._rename(msg, item.name, used, unit)

    def _rename(self, msg: ProtoMessage, name: str, used: Dict[str, int], unit: ProtoUnit) -> str:
        new_name = unique_name(name, used)
        if new_name != name and self.diagnostics is not None:
            self.diagnostics.report(
                DiagnosticKind.NAME_COLLISION,
                f"{msg.name}: field '{name}' renamed to '{new_name}'",
                unit.target_namespace,
            )
        return new_name
