"""
proto3 generator for ProtoUnit.
Outputs one .proto file per unit: header, sorted imports, messages, then enums.
Every field is preceded by an @gotags comment carrying its XML binding, and every enum member
by an @xml comment carrying the original enumeration literal.
"""
from typing import List

from generators.generator_utils import escape_string, get_field_label, to_posix_path
from proto_model import ProtoEnum, ProtoField, ProtoMessage, ProtoOneof, ProtoUnit

INDENT = "  "


def generate_proto3_code(unit: ProtoUnit) -> str:
    blocks = [_header(unit)]
    imports = sorted(to_posix_path(dep) for dep in unit.dependencies)
    if imports:
        blocks.append("\n".join(f'import "{dep}";' for dep in imports))
    for msg in unit.messages:
        blocks.append("\n".join(_emit_message(msg)))
    for enum in unit.enums:
        blocks.append("\n".join(_emit_enum(enum)))
    return "\n\n".join(blocks).strip() + "\n"


def _header(unit: ProtoUnit) -> str:
    return "\n\n".join([
        'syntax = "proto3";',
        f"package {unit.package};",
        f'option go_package = "{unit.info.runtime_path}";',
        f"// Target namespace: {unit.target_namespace}",
    ])


def _emit_field(field: ProtoField, indent: str) -> List[str]:
    return [
        f"{indent}// {field.annotation}",
        f"{indent}{get_field_label(field)}{field.type_name} {field.name} = {field.number};",
    ]


def _emit_message(msg: ProtoMessage) -> List[str]:
    lines = [f"message {msg.name} {{"]
    for item in msg.items:
        if isinstance(item, ProtoOneof):
            lines.append(f"{INDENT}oneof {item.name} {{")
            for field in item.fields:
                lines.extend(_emit_field(field, INDENT * 2))
            lines.append(f"{INDENT}}}")
        else:
            lines.extend(_emit_field(item, INDENT))
    lines.append("}")
    return lines


def _emit_enum(enum: ProtoEnum) -> List[str]:
    lines = [f"enum {enum.name} {{"]
    for value in enum.values:
        if value.literal is not None:
            lines.append(f'{INDENT}// @xml: "{escape_string(value.literal)}"')
        lines.append(f"{INDENT}{value.name} = {value.number};")
    lines.append("}")
    return lines
