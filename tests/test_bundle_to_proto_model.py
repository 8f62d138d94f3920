import os
import pytest

from bundle_to_proto_model import BundleToProtoModel
from diagnostics import DiagnosticKind, Diagnostics
from namespace_mapper import NamespaceConventions, SchemaSpec, build_unit_map, unit_info_for
from proto_model import ProtoOneof, XmlBinding
from xsd_file_loader import load_schema_graph
from xsd_model import (
    XSD_NAMESPACE, ChoiceDecl, ComplexTypeDecl, ContentKind, ElementDecl, NamespaceBundle, Provenance,
    RestrictionDecl, SchemaDocument, SimpleTypeDecl,
)

FIXTURES = os.path.join(os.path.dirname(__file__), "xsd")
CONVENTIONS = NamespaceConventions()
NS = "http://example.com/ns/1"


def emit_spec(entry, spec, shared_units=None):
    graph = load_schema_graph(entry, CONVENTIONS)
    units = build_unit_map(graph.sorted_namespaces(), spec, CONVENTIONS, graph.entry_namespace)
    diagnostics = Diagnostics()
    emitter = BundleToProtoModel(units, CONVENTIONS, shared_units, diagnostics)
    return {ns: emitter.process(graph.bundles[ns], units[ns]) for ns in graph.sorted_namespaces()}, diagnostics


def emit_bundle(bundle, shared_units=None):
    units = build_unit_map([bundle.target_namespace], SchemaSpec("test", "1", "main.xsd"), CONVENTIONS)
    diagnostics = Diagnostics()
    unit = BundleToProtoModel(units, CONVENTIONS, shared_units, diagnostics).process(
        bundle, units[bundle.target_namespace])
    return unit, diagnostics


def make_doc(provenance, complex_types=(), simple_types=(), elements=()):
    return SchemaDocument(NS, list(elements), list(complex_types), list(simple_types), [], [],
                          f"{provenance.value}.xsd", {"xs": XSD_NAMESPACE, "tns": NS}, provenance)


def sequence_type(name, *element_names):
    return ComplexTypeDecl(name, ContentKind.SEQUENCE, [ElementDecl(e, "xs:string") for e in element_names])


def fields_of(msg):
    return [(f.name, f.type_name, f.number, f.repeated, f.xml_name, f.binding) for f in msg.all_fields()]


@pytest.fixture(scope="module")
def ern43():
    units, diagnostics = emit_spec(os.path.join(FIXTURES, "ernv43", "release-notification.xsd"),
                                   SchemaSpec("ern", "43", "release-notification.xsd"))
    return units["http://ddex.net/xml/ern/43"], diagnostics


def test_declaration_order(ern43):
    unit, diagnostics = ern43
    assert [m.name for m in unit.messages] == [
        "NewReleaseMessage", "MessageHeader", "PartyList", "Party", "PartyName", "Name",
        "DetailedPartyId", "ProprietaryId", "ReleaseList", "Release",
    ]
    assert [e.name for e in unit.enums] == ["ReleaseProfileVersionId"]
    assert len(diagnostics.of_kind(DiagnosticKind.UNRESOLVED_TYPE)) == 0


def test_root_element_message(ern43):
    unit, _ = ern43
    assert fields_of(unit.find_message("NewReleaseMessage")) == [
        ("message_header", "MessageHeader", 1, False, "MessageHeader", XmlBinding.ELEMENT),
        ("party_list", "PartyList", 2, False, "PartyList", XmlBinding.ELEMENT),
        ("release_list", "ReleaseList", 3, False, "ReleaseList", XmlBinding.ELEMENT),
        ("language_and_script_code", "string", 4, False, "LanguageAndScriptCode", XmlBinding.ATTRIBUTE),
        ("avs_version_id", "string", 5, False, "AvsVersionId", XmlBinding.ATTRIBUTE),
    ]


def test_nested_choice_becomes_exclusive_group(ern43):
    unit, _ = ern43
    party = unit.find_message("Party")
    assert party.items[0].name == "party_reference"
    group = party.items[1]
    assert isinstance(group, ProtoOneof)
    assert group.name == "choice"
    # members of an exclusive group are never repeated, even with maxOccurs="unbounded"
    assert [(f.name, f.type_name, f.number, f.repeated) for f in group.fields] == [
        ("party_name", "PartyName", 2, False),
        ("party_id", "DetailedPartyId", 3, False),
    ]


def test_simple_content_value_then_attributes(ern43):
    unit, _ = ern43
    assert fields_of(unit.find_message("Name")) == [
        ("value", "string", 1, False, "", XmlBinding.CHARDATA),
        ("language_and_script_code", "string", 2, False, "LanguageAndScriptCode", XmlBinding.ATTRIBUTE),
    ]


def test_shared_vocabulary_fields_are_strings(ern43):
    unit, _ = ern43
    release = unit.find_message("Release")
    assert fields_of(release)[1] == ("release_type", "string", 2, True, "ReleaseType", XmlBinding.ELEMENT)


def test_shared_vocabulary_dependency_defaults_to_latest(ern43):
    unit, diagnostics = ern43
    assert unit.dependencies == ["ddex/avs/vlatest/vlatest.proto"]
    assert len(diagnostics.of_kind(DiagnosticKind.MISSING_VERSION)) == 0


def test_enum_from_simple_type(ern43):
    unit, _ = ern43
    enum = unit.enums[0]
    assert enum.prefix == "RELEASE_PROFILE_VERSION_ID"
    assert [(v.name, v.number) for v in enum.values] == [
        ("RELEASE_PROFILE_VERSION_ID_UNSPECIFIED", 0),
        ("RELEASE_PROFILE_VERSION_ID_AUDIO", 1),
        ("RELEASE_PROFILE_VERSION_ID_VIDEO", 2),
    ]


def test_inline_types_and_cross_unit_dependencies():
    units, diagnostics = emit_spec(os.path.join(FIXTURES, "ernv383", "release_notification.xsd"),
                                   SchemaSpec("ern", "383", "release-notification.xsd"))
    ern = units["http://ddex.net/xml/ern/383"]
    assert ern.package == "ddex.ern.v383"
    assert [m.name for m in ern.messages] == ["NewReleaseMessage", "ReleaseList", "ReleaseListRelease"]
    assert fields_of(ern.find_message("NewReleaseMessage"))[0][1] == "net.ddex.xml.v20100712.ddexC.MessageHeader"
    assert fields_of(ern.find_message("ReleaseList")) == [
        ("release", "ReleaseListRelease", 1, True, "Release", XmlBinding.ELEMENT),
    ]
    assert [(f.name, f.type_name, f.repeated) for f in ern.find_message("ReleaseListRelease").all_fields()] == [
        ("release_type", "string", False),
        ("title", "net.ddex.xml.v20100712.ddexC.Title", True),
    ]
    assert ern.dependencies == [
        "ddex/avs/v20200108/v20200108.proto",
        "net/ddex/xml/v20100712/ddexC/ddexC.proto",
    ]
    ddexc = units["http://ddex.net/xml/20100712/ddexC"]
    assert ddexc.dependencies == []
    assert [m.name for m in ddexc.messages] == ["MessageHeader", "Title", "TitleText"]
    assert len(diagnostics.of_kind(DiagnosticKind.UNRESOLVED_TYPE)) == 0


def test_shared_version_resolved_through_registry():
    shared = {
        "latest": unit_info_for("ddex.avs.vlatest", CONVENTIONS),
        "20200108": unit_info_for("ddex.avs.v20200108", CONVENTIONS),
    }
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.PRIMARY))
    bundle.imports.add("http://ddex.net/xml/avs/avs")
    bundle.shared_version = "20200108"
    unit, diagnostics = emit_bundle(bundle, shared)
    assert unit.dependencies == ["ddex/avs/v20200108/v20200108.proto"]
    assert len(diagnostics) == 0


def test_missing_shared_version_falls_back_to_latest():
    shared = {"latest": unit_info_for("ddex.avs.vlatest", CONVENTIONS)}
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.PRIMARY))
    bundle.imports.add("http://ddex.net/xml/allowed-value-sets")
    bundle.shared_version = "19990101"
    unit, diagnostics = emit_bundle(bundle, shared)
    assert unit.dependencies == ["ddex/avs/vlatest/vlatest.proto"]
    missing = diagnostics.of_kind(DiagnosticKind.MISSING_VERSION)
    assert len(missing) == 1
    assert "19990101" in missing[0].message


def test_primary_declaration_wins_regardless_of_order():
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.AUXILIARY, [
        sequence_type("Scaffold", "AuxOnly"),
        sequence_type("AuxType", "First"),
        sequence_type("AuxType", "Second"),
    ]))
    bundle.add_document(make_doc(Provenance.PRIMARY, [sequence_type("Scaffold", "PrimaryOnly")]))
    unit, _ = emit_bundle(bundle)
    # the primary declaration is emitted where it appears
    assert [m.name for m in unit.messages] == ["AuxType", "Scaffold"]
    assert [f.xml_name for f in unit.find_message("Scaffold").all_fields()] == ["PrimaryOnly"]
    assert unit.find_message("Scaffold").provenance == Provenance.PRIMARY
    # between auxiliaries the first one seen wins
    assert [f.xml_name for f in unit.find_message("AuxType").all_fields()] == ["First"]


def test_included_file_reached_by_import_first_still_wins(write_xsd):
    other_ns = "http://example.com/other/2"
    foo = '<xs:complexType name="Foo"><xs:sequence><xs:element name="{}" type="xs:string"/></xs:sequence></xs:complexType>'
    write_xsd("aux.xsd", foo.format("FromAux"))
    write_xsd("shared.xsd", foo.format("FromShared"))
    write_xsd("other.xsd", '<xs:import namespace="http://example.com/ns/1" schemaLocation="aux.xsd"/>\n'
                           '<xs:import namespace="http://example.com/ns/1" schemaLocation="shared.xsd"/>',
              target_namespace=other_ns)
    write_xsd("a.xsd", f'<xs:import namespace="{other_ns}" schemaLocation="other.xsd"/>')
    entry = write_xsd("main.xsd", '<xs:include schemaLocation="a.xsd"/>\n<xs:include schemaLocation="shared.xsd"/>')
    units, _ = emit_spec(entry, SchemaSpec("test", "1", "main.xsd"))
    foo_msg = units[NS].find_message("Foo")
    assert [f.xml_name for f in foo_msg.all_fields()] == ["FromShared"]
    assert foo_msg.provenance == Provenance.PRIMARY


def test_messages_and_enums_share_one_name_space():
    bundle = NamespaceBundle(NS)
    enum = SimpleTypeDecl("Status", RestrictionDecl("xs:string", ["On", "Off"]))
    bundle.add_document(make_doc(Provenance.PRIMARY, [sequence_type("Status", "Code")], [enum]))
    unit, _ = emit_bundle(bundle)
    assert [m.name for m in unit.messages] == ["Status"]
    assert unit.enums == []


def test_top_level_choice_and_empty_choice():
    choice = ComplexTypeDecl("Either", ContentKind.CHOICE, [ChoiceDecl([
        ElementDecl("A", "xs:string", max_occurs="unbounded"),
        ElementDecl("B", "xs:int", max_occurs="3"),
        ElementDecl("C", "xs:boolean", min_occurs="0", max_occurs="1"),
    ])])
    empty = ComplexTypeDecl("Nothing", ContentKind.CHOICE, [ChoiceDecl([])])
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.PRIMARY, [choice, empty]))
    unit, _ = emit_bundle(bundle)
    either = unit.find_message("Either")
    assert len(either.items) == 1 and either.items[0] is either.oneofs[0]
    assert either.oneofs[0].name == "choice"
    assert [(f.name, f.type_name, f.number, f.repeated) for f in either.all_fields()] == [
        ("a", "string", 1, False), ("b", "int32", 2, False), ("c", "bool", 3, False)]
    assert unit.find_message("Nothing").items == []


def test_unbounded_member_of_nested_choice_is_not_repeated():
    ct = ComplexTypeDecl("Mixed", ContentKind.SEQUENCE, [
        ElementDecl("Id", "xs:string", max_occurs="unbounded"),
        ChoiceDecl([
            ElementDecl("A", "xs:string", max_occurs="unbounded"),
            ElementDecl("B", "xs:string", max_occurs="2"),
            ElementDecl("C", "xs:string"),
        ], max_occurs="unbounded"),
    ])
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.PRIMARY, [ct]))
    unit, _ = emit_bundle(bundle)
    mixed = unit.find_message("Mixed")
    assert isinstance(mixed.items[1], ProtoOneof)
    assert [(f.name, f.number, f.repeated) for f in mixed.all_fields()] == [
        ("id", 1, True), ("a", 2, False), ("b", 3, False), ("c", 4, False)]


def test_duplicate_field_names_are_suffixed():
    ct = sequence_type("Dup", "Title", "title")
    bundle = NamespaceBundle(NS)
    bundle.add_document(make_doc(Provenance.PRIMARY, [ct]))
    unit, diagnostics = emit_bundle(bundle)
    assert [(f.name, f.xml_name, f.number) for f in unit.messages[0].all_fields()] == [
        ("title", "Title", 1), ("title_1", "title", 2)]
    assert len(diagnostics.of_kind(DiagnosticKind.NAME_COLLISION)) == 1


def test_unsupported_constructs_are_diagnosed(write_xsd):
    entry = write_xsd("main.xsd", """
  <xs:complexType name="Derived">
    <xs:complexContent>
      <xs:extension base="tns:Base"/>
    </xs:complexContent>
  </xs:complexType>
  <xs:complexType name="Holder">
    <xs:sequence>
      <xs:element ref="tns:Shared" maxOccurs="unbounded"/>
    </xs:sequence>
  </xs:complexType>""")
    units, diagnostics = emit_spec(entry, SchemaSpec("test", "1", "main.xsd"))
    unit = units[NS]
    assert unit.find_message("Derived").items == []
    assert [(f.name, f.type_name, f.repeated) for f in unit.find_message("Holder").all_fields()] == [
        ("shared", "string", True)]
    assert len(diagnostics.of_kind(DiagnosticKind.UNSUPPORTED_CONSTRUCT)) == 2


def test_unresolved_reference_still_emits(write_xsd):
    entry = write_xsd("main.xsd", """
  <xs:complexType name="Holder">
    <xs:sequence>
      <xs:element name="Thing" type="tns:NotDeclared"/>
      <xs:element name="Other" type="xs:string"/>
    </xs:sequence>
  </xs:complexType>""")
    units, diagnostics = emit_spec(entry, SchemaSpec("test", "1", "main.xsd"))
    assert [(f.name, f.type_name) for f in units[NS].find_message("Holder").all_fields()] == [
        ("thing", "NotDeclared"), ("other", "string")]
    assert len(diagnostics.of_kind(DiagnosticKind.UNRESOLVED_TYPE)) == 1
