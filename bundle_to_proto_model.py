"""
Transform: Converts a loaded NamespaceBundle into a ProtoUnit ready for code generation.
"""
import logging
from typing import Dict, List, Optional, Set, Tuple

from diagnostics import DiagnosticKind, Diagnostics
from model_transforms.assign_enum_values_transform import AssignEnumValuesTransform
from model_transforms.assign_field_numbers_transform import AssignFieldNumbersTransform
from model_transforms.model_transform_pipeline import run_model_transform_pipeline
from model_transforms.prefix_enum_value_names_transform import PrefixEnumValueNamesTransform
from model_transforms.unique_field_names_transform import UniqueFieldNamesTransform
from namespace_mapper import NamespaceConventions, UnitInfo, unit_info_for
from proto_model import ProtoEnum, ProtoField, ProtoMessage, ProtoOneof, ProtoUnit, XmlBinding
from type_translator import TypeTranslator, split_qname, to_enum_prefix, to_field_name, to_message_name
from xsd_model import (
    ChoiceDecl, ComplexTypeDecl, ContentKind, ElementDecl, NamespaceBundle, Provenance,
)

logger = logging.getLogger(__name__)

LATEST = "latest"
SCALAR_TYPES = {"string", "int32", "int64", "bool", "double", "bytes"}


class BundleToProtoModel:
    """
    units maps every namespace of the current spec to its UnitInfo. shared_units maps a
    shared vocabulary version ('latest', '20200108', ...) to the unit compiled for it earlier
    in the run; it is consulted instead of units for the shared vocabulary import.
    """

    def __init__(self, units: Dict[str, UnitInfo], conventions: Optional[NamespaceConventions] = None,
                 shared_units: Optional[Dict[str, UnitInfo]] = None, diagnostics: Optional[Diagnostics] = None):
        self.units = units
        self.conventions = conventions or NamespaceConventions()
        self.shared_units = shared_units if shared_units is not None else {}
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    def process(self, bundle: NamespaceBundle, unit_info: UnitInfo) -> ProtoUnit:
        namespace = bundle.target_namespace
        plan = self._plan_declarations(bundle)
        chosen = self._choose(bundle, plan)

        translator = TypeTranslator(
            namespace, self.units, self.conventions, self.diagnostics,
            local_names={name for name, _, _, _ in plan},
            simple_bases=self._simple_bases(bundle),
        )
        referenced: Set[str] = set()
        unit = ProtoUnit(unit_info, namespace)

        chosen_ids = {id(decl) for decl in chosen.values()}
        for name, kind, decl, owner in plan:
            if chosen[name] is not decl:
                continue
            # anonymous types follow their owner in or out
            if kind == "inline" and id(self._top_level_type(owner)) not in chosen_ids:
                continue
            provenance = bundle.provenance_of(owner)
            prefixes = bundle.namespaces_of(owner)
            if kind == "enum":
                unit.enums.append(ProtoEnum(name, to_enum_prefix(decl.name), list(decl.restriction.enumerations),
                                            provenance=provenance))
            else:
                unit.messages.append(self._build_message(name, decl, prefixes, translator, referenced, provenance))

        unit.dependencies = self._dependencies(bundle, unit_info, referenced)
        run_model_transform_pipeline(unit, [
            UniqueFieldNamesTransform(self.diagnostics),
            AssignFieldNumbersTransform(),
            PrefixEnumValueNamesTransform(self.diagnostics),
            AssignEnumValuesTransform(),
        ])
        logger.debug("Unit %s: %d messages, %d enums, %d imports",
                     unit.package, len(unit.messages), len(unit.enums), len(unit.dependencies))
        return unit

    # --- Declaration registry ---

    def _plan_declarations(self, bundle: NamespaceBundle) -> List[Tuple[str, str, object, object]]:
        """
        Every candidate declaration as (proto name, kind, decl, top-level owner), in emission order:
        inline-typed top-level elements, named complex types, then enumerations. Messages for
        anonymous types nested inside a message follow their owner.
        """
        plan = []
        for el in bundle.elements:
            if el.complex_type is not None and el.name:
                name = to_message_name(el.name)
                plan.append((name, "element", el.complex_type, el))
                plan.extend(self._nested_declarations(name, el.complex_type, el))
        for ct in bundle.complex_types:
            if ct.name:
                name = to_message_name(ct.name)
                plan.append((name, "complex_type", ct, ct))
                plan.extend(self._nested_declarations(name, ct, ct))
        for st in bundle.simple_types:
            if st.is_enumeration:
                plan.append((to_message_name(st.name), "enum", st, st))
        return plan

    def _nested_declarations(self, owner_name: str, ct: ComplexTypeDecl, owner) -> list:
        nested = []
        for el in self._elements_of(ct):
            if el.complex_type is not None and el.name:
                name = owner_name + to_message_name(el.name)
                nested.append((name, "inline", el.complex_type, owner))
                nested.extend(self._nested_declarations(name, el.complex_type, owner))
        return nested

    def _choose(self, bundle: NamespaceBundle, plan) -> Dict[str, object]:
        # primary declarations win regardless of order; otherwise the first one seen
        registry: Dict[str, Provenance] = {}
        chosen: Dict[str, object] = {}
        for name, kind, decl, owner in plan:
            provenance = bundle.provenance_of(owner)
            if name not in registry:
                registry[name] = provenance
                chosen[name] = decl
            elif registry[name] == Provenance.AUXILIARY and provenance == Provenance.PRIMARY:
                registry[name] = provenance
                chosen[name] = decl
        return chosen

    # --- Messages ---

    def _build_message(self, name: str, ct: ComplexTypeDecl, prefixes: Dict[str, str],
                       translator: TypeTranslator, referenced: Set[str], provenance: Provenance) -> ProtoMessage:
        msg = ProtoMessage(name, provenance=provenance)
        for construct in ct.unsupported:
            self.diagnostics.report(
                DiagnosticKind.UNSUPPORTED_CONSTRUCT,
                f"{name}: {construct} is not supported, skipped",
                translator.namespace,
            )

        if ct.content_kind == ContentKind.SEQUENCE:
            for particle in ct.particles:
                if isinstance(particle, ChoiceDecl):
                    oneof = self._build_oneof(name, particle, prefixes, translator, referenced)
                    if oneof is not None:
                        msg.items.append(oneof)
                else:
                    msg.items.append(self._element_field(name, particle, prefixes, translator, referenced))
        elif ct.content_kind == ContentKind.CHOICE and ct.choice is not None:
            oneof = self._build_oneof(name, ct.choice, prefixes, translator, referenced)
            if oneof is not None:
                msg.items.append(oneof)
        elif ct.content_kind == ContentKind.SIMPLE_CONTENT and ct.simple_content is not None:
            value_type = translator.translate(ct.simple_content.base, prefixes, name).proto_type
            if value_type not in SCALAR_TYPES:
                value_type = "string"
            msg.items.append(ProtoField("value", value_type, "", XmlBinding.CHARDATA))
            for attr in ct.simple_content.attributes:
                msg.items.append(self._attribute_field(name, attr, prefixes, translator, referenced))

        for attr in ct.attributes:
            msg.items.append(self._attribute_field(name, attr, prefixes, translator, referenced))
        return msg

    def _build_oneof(self, owner: str, choice: ChoiceDecl, prefixes, translator, referenced) -> Optional[ProtoOneof]:
        if not choice.elements:
            return None
        fields = []
        for el in choice.elements:
            field = self._element_field(owner, el, prefixes, translator, referenced)
            field.repeated = False  # proto3 oneof members cannot be repeated
            fields.append(field)
        return ProtoOneof("choice", fields)

    def _element_field(self, owner: str, el: ElementDecl, prefixes, translator, referenced) -> ProtoField:
        if el.ref and not el.name:
            _, local = split_qname(el.ref)
            self.diagnostics.report(
                DiagnosticKind.UNSUPPORTED_CONSTRUCT,
                f"{owner}: element ref '{el.ref}' is not supported, using string",
                translator.namespace,
            )
            return ProtoField(to_field_name(local), "string", local, repeated=el.is_repeated)
        if el.complex_type is not None:
            type_name = owner + to_message_name(el.name)
        elif el.type_name:
            type_name = self._translate(el.type_name, prefixes, translator, referenced, f"{owner}.{el.name}")
        else:
            type_name = "string"
        return ProtoField(to_field_name(el.name), type_name, el.name, XmlBinding.ELEMENT, repeated=el.is_repeated)

    def _attribute_field(self, owner: str, attr, prefixes, translator, referenced) -> ProtoField:
        type_name = "string"
        if attr.type_name:
            type_name = self._translate(attr.type_name, prefixes, translator, referenced, f"{owner}@{attr.name}")
        return ProtoField(to_field_name(attr.name), type_name, attr.name, XmlBinding.ATTRIBUTE)

    def _translate(self, qname: str, prefixes, translator: TypeTranslator, referenced: Set[str], context: str) -> str:
        translated = translator.translate(qname, prefixes, context)
        if translated.is_cross_unit:
            referenced.add(translated.namespace)
        return translated.proto_type

    # --- Helpers ---

    def _top_level_type(self, owner) -> ComplexTypeDecl:
        return owner.complex_type if isinstance(owner, ElementDecl) else owner

    def _elements_of(self, ct: ComplexTypeDecl) -> List[ElementDecl]:
        elements = []
        for particle in ct.particles:
            if isinstance(particle, ChoiceDecl):
                elements.extend(particle.elements)
            else:
                elements.append(particle)
        return elements

    def _simple_bases(self, bundle: NamespaceBundle) -> Dict[str, Tuple[str, Dict[str, str]]]:
        bases = {}
        for st in bundle.simple_types:
            if st.name and not st.is_enumeration and st.restriction is not None and st.restriction.base:
                bases.setdefault(st.name, (st.restriction.base, bundle.namespaces_of(st)))
        return bases

    def _dependencies(self, bundle: NamespaceBundle, unit_info: UnitInfo, referenced: Set[str]) -> List[str]:
        deps = set()
        for ns in bundle.imports | referenced:
            if ns == bundle.target_namespace:
                continue
            if self.conventions.is_shared_vocabulary(ns):
                deps.add(self._shared_unit(bundle).file_path)
            elif ns in self.units:
                deps.add(self.units[ns].file_path)
        deps.discard(unit_info.file_path)
        return sorted(deps)

    def _shared_unit(self, bundle: NamespaceBundle) -> UnitInfo:
        selector = bundle.shared_version or LATEST
        if not self.shared_units:
            # nothing compiled in this run to check against: trust the selector
            return unit_info_for(self.conventions.shared_unit_name(selector), self.conventions)
        info = self.shared_units.get(selector)
        if info is not None:
            return info
        self.diagnostics.report(
            DiagnosticKind.MISSING_VERSION,
            f"shared vocabulary version '{selector}' was not compiled, using '{LATEST}'",
            bundle.target_namespace,
        )
        return self.shared_units.get(LATEST) or unit_info_for(self.conventions.shared_unit_name(LATEST),
                                                              self.conventions)
