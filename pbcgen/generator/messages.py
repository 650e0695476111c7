"""Struct layouts, helper functions and descriptors for messages."""

import logging
from dataclasses import dataclass

from .enums import EnumGenerator, int_ranges
from .errors import SchemaError
from .fields import (
    DescriptorEntry,
    FieldGenerator,
    FieldGeneratorSet,
    MemberRole,
    StructMember,
    descriptor_entry,
)
from .names import camel_to_lower, camel_to_upper, full_name_to_c, full_name_to_lower, full_name_to_upper, to_camel
from .templating import render
from .types import MessageType, OneofDescriptor, SchemaFile, SchemaSet

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class OneofLayout:
    """The discriminant and anonymous union a oneof occupies in its struct."""

    oneof: OneofDescriptor
    case_type: str
    case_prefix: str
    discriminant: StructMember
    fields: tuple[FieldGenerator, ...]

    @property
    def members(self) -> list[StructMember]:
        return [member for gen in self.fields for member in gen.members()]

    def case_value(self, gen: FieldGenerator) -> str:
        return f"{self.case_prefix}_{camel_to_upper(gen.field.name)}"


@dataclass(frozen=True)
class HelperOptions:
    """Which helper functions a message gets."""

    pack: bool
    init: bool


class MessageGenerator:
    """Generates everything for one message and, recursively, its nested types."""

    def __init__(
        self,
        message: MessageType,
        file: SchemaFile,
        schema: SchemaSet,
        *,
        nested: bool = False,
    ):
        self.message = message
        self.file = file
        self.nested = nested
        self.fields = FieldGeneratorSet(message, file, schema)
        self.nested_generators = [
            MessageGenerator(m, file, schema, nested=True) for m in message.nested_types
        ]
        self.enum_generators = [EnumGenerator(e, file) for e in message.enum_types]
        self._check_numbers()

    @property
    def classname(self) -> str:
        return full_name_to_c(self.message.full_name)

    @property
    def lcclassname(self) -> str:
        return full_name_to_lower(self.message.full_name)

    @property
    def ucclassname(self) -> str:
        return full_name_to_upper(self.message.full_name)

    def _check_numbers(self) -> None:
        seen: dict[int, str] = {}
        for fd in self.message.fields:
            if fd.number in seen:
                raise SchemaError(
                    f"field number {fd.number} already used by {seen[fd.number]}",
                    file=self.file.name,
                    message=self.message.full_name,
                    field=fd.name,
                )
            seen[fd.number] = fd.name

    # Layout

    def oneof_layouts(self) -> list[OneofLayout]:
        layouts = []
        for index, oneof in enumerate(self.message.oneofs):
            members = tuple(gen for gen in self.fields if gen.field.oneof_index == index)
            if not members:
                continue
            case_type = f"{self.classname}__{to_camel(oneof.name)}Case"
            layouts.append(
                OneofLayout(
                    oneof=oneof,
                    case_type=case_type,
                    case_prefix=f"{self.ucclassname}__{camel_to_upper(oneof.name)}",
                    discriminant=StructMember(
                        case_type, f"{camel_to_lower(oneof.name)}_case", MemberRole.DISCRIMINANT
                    ),
                    fields=members,
                )
            )
        return layouts

    def plain_fields(self) -> list[FieldGenerator]:
        return [gen for gen in self.fields if not gen.field.in_oneof]

    def layout(self) -> list[StructMember]:
        """Struct members after the ``base`` member, in C order."""
        members = [member for gen in self.plain_fields() for member in gen.members()]
        for oneof in self.oneof_layouts():
            members.append(oneof.discriminant)
            members.extend(oneof.members)
        return members

    def init_values(self) -> list[str]:
        values = [gen.static_init() for gen in self.plain_fields()]
        for oneof in self.oneof_layouts():
            values.append(f"{oneof.case_prefix}__NOT_SET, {{0}}")
        return values

    # Helper gating

    def helper_options(self, pack: bool | None, init: bool) -> HelperOptions:
        """Resolve helper generation against the file options.

        An unset file-level pack option means pack helpers for top-level
        messages only.
        """
        options = self.message.options
        if options.gen_pack_helpers is not None:
            gen_pack = options.gen_pack_helpers
        elif pack is not None:
            gen_pack = pack
        else:
            gen_pack = not self.nested
        gen_init = options.gen_init_helpers if options.gen_init_helpers is not None else init
        return HelperOptions(pack=gen_pack, init=gen_init)

    def nested_pack(self, pack: bool | None) -> bool | None:
        """Pack option handed to nested messages.

        Without a file-level value, nested messages follow this message's
        own pack option.
        """
        return pack if pack is not None else self.message.options.gen_pack_helpers

    # Declaration unit

    def struct_typedef(self) -> str:
        out = f"typedef struct {self.classname} {self.classname};\n"
        for nested in self.nested_generators:
            out += nested.struct_typedef()
        return out

    def enum_definitions(self) -> str:
        out = "".join(nested.enum_definitions() for nested in self.nested_generators)
        out += "".join(gen.definition() for gen in self.enum_generators)
        return out

    def struct_definition(self) -> str:
        out = "".join(nested.struct_definition() for nested in self.nested_generators)
        default_declarations = [
            decl for gen in self.fields if (decl := gen.default_value_declaration()) is not None
        ]
        out += render(
            "message_struct.h.j2",
            gen=self,
            plain_members=[m for gen in self.plain_fields() for m in gen.members()],
            oneofs=self.oneof_layouts(),
            init_values=self.init_values(),
            default_declarations=default_declarations,
        )
        return out

    def helper_declarations(self, pack: bool | None, init: bool) -> str:
        helpers = self.helper_options(pack, init)
        nested_pack = self.nested_pack(pack)
        out = "".join(n.helper_declarations(nested_pack, helpers.init) for n in self.nested_generators)
        if helpers.pack or helpers.init:
            out += render("message_helpers.h.j2", gen=self, helpers=helpers)
        return out

    def closure_typedef(self) -> str:
        out = "".join(nested.closure_typedef() for nested in self.nested_generators)
        out += (
            f"typedef void (*{self.classname}_Closure)\n"
            f"                 (const {self.classname} *message,\n"
            f"                  void *closure_data);\n"
        )
        return out

    def descriptor_declarations(self) -> str:
        out = f"extern const ProtobufCMessageDescriptor {self.lcclassname}__descriptor;\n"
        for gen in self.enum_generators:
            out += gen.descriptor_declaration()
        for nested in self.nested_generators:
            out += nested.descriptor_declarations()
        return out

    # Metadata unit

    def helper_definitions(self, pack: bool | None, init: bool) -> str:
        helpers = self.helper_options(pack, init)
        nested_pack = self.nested_pack(pack)
        out = "".join(n.helper_definitions(nested_pack, helpers.init) for n in self.nested_generators)
        if helpers.pack or helpers.init:
            out += render("message_helpers.c.j2", gen=self, helpers=helpers)
        return out

    def descriptor_entries(self) -> list[DescriptorEntry]:
        """Field descriptor table, sorted by field number."""
        return [descriptor_entry(gen) for gen in sorted(self.fields, key=lambda g: g.field.number)]

    def message_descriptor(self, init: bool) -> str:
        _LOG.debug("Generating descriptor for %s", self.message.full_name)
        helpers = self.helper_options(None, init)
        out = "".join(n.message_descriptor(helpers.init) for n in self.nested_generators)
        out += "".join(gen.descriptor() for gen in self.enum_generators)

        by_number = sorted(self.fields, key=lambda g: g.field.number)
        indices_by_name = sorted(
            ((index, gen.field.name) for index, gen in enumerate(by_number)),
            key=lambda item: item[1],
        )
        ranges = int_ranges([gen.field.number for gen in by_number])
        default_definitions = [
            definition
            for gen in self.fields
            if (definition := gen.default_value_definition()) is not None
        ]
        out += render(
            "message_descriptor.c.j2",
            gen=self,
            entries=[entry.render().rstrip("\n") for entry in self.descriptor_entries()],
            indices_by_name=indices_by_name,
            ranges=[f"{{ {start}, {index} }}" for start, index in ranges],
            range_count=len(ranges) - 1,
            default_definitions=default_definitions,
            init=helpers.init,
        )
        return out
