from lark import Lark


# Grammar for the proto3 subset written by generators/proto3_generator.py
grammar = r"""
    start: header_item* (comment | import_stmt | message | enum_def)*

    header_item: syntax_stmt | package_stmt | option_stmt
    syntax_stmt: "syntax" "=" STRING ";"
    package_stmt: "package" dotted_name ";"
    option_stmt: "option" NAME "=" STRING ";"
    import_stmt: "import" STRING ";"

    message: "message" NAME "{" message_body* "}"
    message_body: comment | field | oneof
    oneof: "oneof" NAME "{" oneof_body* "}"
    oneof_body: comment | field
    field: LABEL? type_ref NAME "=" NUMBER ";"
    type_ref: dotted_name

    enum_def: "enum" NAME "{" enum_body* "}"
    enum_body: comment | enum_value
    enum_value: NAME "=" NUMBER ";"

    comment: LOCAL_COMMENT
    dotted_name: NAME ("." NAME)*

    LABEL.2: "repeated" | "optional"
    LOCAL_COMMENT: /\/\/[^\n]*/
    NAME: /[a-zA-Z_][a-zA-Z0-9_]*/
    NUMBER: /-?[0-9]+/
    STRING: /"(\\.|[^"\\])*"/
    %import common.WS
    %ignore WS
"""

parser = Lark(
    grammar,
    start='start',
    propagate_positions=True
)


def parse_proto_text(text):
    return parser.parse(text)
