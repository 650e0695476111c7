"""Per-field code generation.

Each field of a message becomes a ``FieldGenerator``: a closed variant over
the kinds of C storage a field can have (message pointer, string, binary
data, enum, primitive). The variant only changes how the struct members and
static initializers are written; the descriptor table entry is computed by a
single function, ``descriptor_entry``, for every variant.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntFlag, StrEnum, auto

from .errors import ContractViolation, SchemaError, UnsupportedSchemaError
from .names import camel_to_lower, field_name, full_name_to_c, full_name_to_lower, full_name_to_upper
from .templating import render
from .types import (
    PACKABLE_TYPES,
    EnumType,
    FieldDescriptor,
    FieldType,
    Label,
    MessageType,
    OneofDescriptor,
    OptimizeMode,
    SchemaFile,
    SchemaSet,
    Syntax,
)

_LOG = logging.getLogger(__name__)

PRIMITIVE_TYPE_MAP = {
    FieldType.INT32: "int32_t",
    FieldType.SINT32: "int32_t",
    FieldType.SFIXED32: "int32_t",
    FieldType.INT64: "int64_t",
    FieldType.SINT64: "int64_t",
    FieldType.SFIXED64: "int64_t",
    FieldType.UINT32: "uint32_t",
    FieldType.FIXED32: "uint32_t",
    FieldType.UINT64: "uint64_t",
    FieldType.FIXED64: "uint64_t",
    FieldType.FLOAT: "float",
    FieldType.DOUBLE: "double",
    FieldType.BOOL: "protobuf_c_boolean",
}

# Types the generator refuses to handle. A field of one of these types has no
# generator, and the message containing it cannot be generated.
UNSUPPORTED_TYPES = frozenset([FieldType.GROUP])

EMPTY_STRING = "protobuf_c_empty_string"


class FieldVariant(StrEnum):
    """C storage category of a field."""

    MESSAGE = auto()
    STRING = auto()
    BYTES = auto()
    ENUM = auto()
    PRIMITIVE = auto()


class FieldFlag(IntFlag):
    """Bits of ``ProtobufCFieldDescriptor.flags``."""

    PACKED = 1 << 0
    DEPRECATED = 1 << 1
    ONEOF = 1 << 2


def render_flags(flags: FieldFlag) -> str:
    """C expression for a flag set: ``0`` alone, otherwise only the set bits."""
    names = [f"PROTOBUF_C_FIELD_FLAG_{flag.name}" for flag in FieldFlag if flag in flags]
    return " | ".join(names) if names else "0"


class MemberRole(StrEnum):
    VALUE = auto()
    PRESENCE = auto()
    COUNT = auto()
    DISCRIMINANT = auto()


@dataclass(frozen=True)
class StructMember:
    """One member of a generated C struct."""

    c_type: str
    name: str
    role: MemberRole
    suffix: str = ""

    @property
    def declaration(self) -> str:
        sep = "" if self.c_type.endswith("*") else " "
        return f"{self.c_type}{sep}{self.name}{self.suffix};"


@dataclass(frozen=True)
class DescriptorEntry:
    """One ``ProtobufCFieldDescriptor`` initializer.

    ``name`` is None when names are stripped for code size;
    ``quantifier_offset`` is None when the field has no presence/count slot.
    """

    name: str | None
    number: int
    label: str
    type: str
    quantifier_offset: str | None
    value_offset: str
    descriptor_addr: str
    default_value: str
    flags: FieldFlag

    def render(self) -> str:
        return render("field_descriptor.c.j2", entry=self, flags=render_flags(self.flags))


def c_escape(text: str) -> str:
    """Escape text for use inside a C string literal."""
    out = []
    for c in text.encode("utf-8"):
        if c == ord("\n"):
            out.append("\\n")
        elif c == ord("\r"):
            out.append("\\r")
        elif c == ord("\t"):
            out.append("\\t")
        elif c in (ord('"'), ord("'"), ord("\\")):
            out.append("\\" + chr(c))
        elif c < 0x20 or c >= 0x7F:
            out.append(f"\\{c:03o}")
        else:
            out.append(chr(c))
    return "".join(out)


def _pointer_to(c_type: str) -> str:
    return c_type + "*" if c_type.endswith("*") else c_type + " *"


def _float_literal(text: str, suffix: str) -> str:
    lowered = text.lower()
    if lowered in ("inf", "+inf"):
        return "INFINITY"
    if lowered == "-inf":
        return "-INFINITY"
    if lowered == "nan":
        return "NAN"
    if not any(c in lowered for c in ".e"):
        text += ".0"
    return text + suffix


def _int_literal(text: str, bits: int, signed: bool) -> str:
    value = int(text)
    suffix = {(32, True): "", (32, False): "u", (64, True): "ll", (64, False): "ull"}[(bits, signed)]
    if signed and value == -(1 << (bits - 1)):
        # The most negative value has no literal form in C.
        return f"{value + 1}{suffix}-1"
    return f"{value}{suffix}"


_INT_LITERAL_SHAPE = {
    FieldType.INT32: (32, True),
    FieldType.SINT32: (32, True),
    FieldType.SFIXED32: (32, True),
    FieldType.UINT32: (32, False),
    FieldType.FIXED32: (32, False),
    FieldType.INT64: (64, True),
    FieldType.SINT64: (64, True),
    FieldType.SFIXED64: (64, True),
    FieldType.UINT64: (64, False),
    FieldType.FIXED64: (64, False),
}


def primitive_literal(field_type: FieldType, text: str) -> str:
    """C literal for a scalar default value given in protoc text form."""
    if field_type == FieldType.BOOL:
        return "1" if text == "true" else "0"
    if field_type == FieldType.FLOAT:
        return _float_literal(text, "f")
    if field_type == FieldType.DOUBLE:
        return _float_literal(text, "")
    bits, signed = _INT_LITERAL_SHAPE[field_type]
    return _int_literal(text, bits, signed)


@dataclass(frozen=True)
class FieldGenerator:
    """Generates the struct members and descriptor entry of one field."""

    field: FieldDescriptor
    variant: FieldVariant
    message: MessageType
    file: SchemaFile
    enum_type: EnumType | None = None

    @property
    def classname(self) -> str:
        return full_name_to_c(self.message.full_name)

    @property
    def name(self) -> str:
        return field_name(self.field.name)

    @property
    def oneof(self) -> OneofDescriptor | None:
        return self.message.oneof_of(self.field)

    @property
    def implicit_presence(self) -> bool:
        """True in the proto3 dialect where plain fields have no has_ flag."""
        return self.file.syntax == Syntax.PROTO3 and not self.field.proto3_optional

    @property
    def uses_presence_flag(self) -> bool:
        return (
            self.field.label == Label.OPTIONAL
            and self.oneof is None
            and not self.implicit_presence
        )

    @property
    def type_macro(self) -> str:
        if self.variant == FieldVariant.PRIMITIVE:
            return self.field.type.upper()
        return self.variant.upper()

    @property
    def c_type(self) -> str:
        """C type of a single value of the field."""
        if self.variant == FieldVariant.PRIMITIVE:
            return PRIMITIVE_TYPE_MAP[self.field.type]
        if self.variant == FieldVariant.STRING:
            return "char *"
        if self.variant == FieldVariant.BYTES:
            return "ProtobufCBinaryData"
        if self.variant == FieldVariant.MESSAGE:
            return full_name_to_c(self.field.type_name) + " *"
        return full_name_to_c(self.field.type_name)

    @property
    def descriptor_addr(self) -> str:
        if self.variant in (FieldVariant.MESSAGE, FieldVariant.ENUM):
            return f"&{full_name_to_lower(self.field.type_name)}__descriptor"
        return "NULL"

    @property
    def default_value_name(self) -> str:
        return f"{full_name_to_lower(self.message.full_name + '.' + self.field.name)}__default_value"

    def members(self) -> list[StructMember]:
        """Struct members for this field, in declaration order.

        Oneof members only contribute their value; the message owns the
        shared discriminant.
        """
        suffix = " PROTOBUF_C__DEPRECATED" if self.field.options.deprecated else ""
        if self.field.label == Label.REPEATED:
            return [
                StructMember("size_t", f"n_{self.name}", MemberRole.COUNT),
                StructMember(_pointer_to(self.c_type), self.name, MemberRole.VALUE, suffix),
            ]
        value = StructMember(self.c_type, self.name, MemberRole.VALUE, suffix)
        if self.uses_presence_flag:
            return [StructMember("protobuf_c_boolean", f"has_{self.name}", MemberRole.PRESENCE), value]
        return [value]

    def value_init(self) -> str:
        """Initializer of the value slot alone (no presence or count part)."""
        default = self.field.default_value
        if self.variant == FieldVariant.PRIMITIVE:
            if default is None:
                return "0"
            try:
                return primitive_literal(self.field.type, default)
            except ValueError as err:
                raise SchemaError(
                    f"invalid default value {default!r}",
                    file=self.file.name,
                    message=self.message.full_name,
                    field=self.field.name,
                ) from err
        if self.variant == FieldVariant.STRING:
            if default is not None:
                return self.default_value_name
            if self.implicit_presence:
                return f"(char *){EMPTY_STRING}"
            return "NULL"
        if self.variant == FieldVariant.BYTES:
            if default is not None:
                return f'{{ sizeof("{self._bytes_literal()}") - 1, (uint8_t *) "{self._bytes_literal()}" }}'
            return "{0,NULL}"
        if self.variant == FieldVariant.ENUM:
            return self._enum_value(default)
        return "NULL"

    def static_init(self) -> str:
        """Initializer for every member this field contributes to the INIT macro."""
        if self.field.label == Label.REPEATED:
            return "0,NULL"
        if self.uses_presence_flag:
            return f"0, {self.value_init()}"
        return self.value_init()

    def default_value_definition(self) -> str | None:
        """C definition of the field's explicit default, for the metadata unit."""
        default = self.field.default_value
        if default is None:
            return None
        name = self.default_value_name
        if self.variant == FieldVariant.STRING:
            return f'char {name}[] = "{c_escape(default)}";'
        if self.variant == FieldVariant.BYTES:
            literal = self._bytes_literal()
            return f'static const ProtobufCBinaryData {name} = {{ sizeof("{literal}") - 1, (uint8_t *) "{literal}" }};'
        if self.variant == FieldVariant.MESSAGE:
            raise SchemaError(
                "message fields cannot have a default value",
                file=self.file.name,
                message=self.message.full_name,
                field=self.field.name,
            )
        return f"static const {self.c_type} {name} = {self.value_init()};"

    def default_value_declaration(self) -> str | None:
        """Header declaration needed by the INIT macro (string defaults only)."""
        if self.variant == FieldVariant.STRING and self.field.default_value is not None:
            return f"extern char {self.default_value_name}[];"
        return None

    def _bytes_literal(self) -> str:
        # protoc already hands bytes defaults over in C-escaped form.
        return self.field.default_value or ""

    def _enum_value(self, value_name: str | None) -> str:
        prefix = full_name_to_upper(self.field.type_name)
        if value_name is None:
            if self.enum_type is None or not self.enum_type.values:
                raise SchemaError(
                    f"enum type {self.field.type_name} has no values",
                    file=self.file.name,
                    message=self.message.full_name,
                    field=self.field.name,
                )
            value_name = self.enum_type.values[0].name
        return f"{prefix}__{value_name}"


def descriptor_entry(gen: FieldGenerator) -> DescriptorEntry:
    """Build the descriptor table entry of a field.

    Identical for every variant; only ``type_macro`` and ``descriptor_addr``
    come from the variant.
    """
    fd = gen.field
    oneof = gen.oneof
    options = gen.file.options

    if oneof is not None and options.use_oneof_field_name:
        proto_name = oneof.name
    else:
        proto_name = fd.name

    uses_presence_flag = gen.uses_presence_flag
    if gen.implicit_presence and fd.label == Label.OPTIONAL and oneof is None:
        label = "NONE"
        uses_presence_flag = False
    else:
        label = fd.label.upper()

    if fd.has_default_value:
        default_value = f"&{gen.default_value_name}"
    elif gen.implicit_presence and fd.type == FieldType.STRING:
        default_value = f"&{EMPTY_STRING}"
    else:
        default_value = "NULL"

    flags = FieldFlag(0)
    if fd.label == Label.REPEATED and fd.type in PACKABLE_TYPES:
        if fd.options.packed is True:
            flags |= FieldFlag.PACKED
        elif fd.options.packed is None and gen.implicit_presence:
            flags |= FieldFlag.PACKED
        # An explicit packed=false always leaves the field unpacked.
    if fd.options.deprecated:
        flags |= FieldFlag.DEPRECATED
    if oneof is not None:
        flags |= FieldFlag.ONEOF

    if fd.label == Label.REQUIRED:
        quantifier_offset = None
    elif fd.label == Label.OPTIONAL:
        if oneof is not None:
            quantifier_offset = f"offsetof({gen.classname}, {camel_to_lower(oneof.name)}_case)"
        elif uses_presence_flag:
            quantifier_offset = f"offsetof({gen.classname}, has_{gen.name})"
        else:
            quantifier_offset = None
    else:
        quantifier_offset = f"offsetof({gen.classname}, n_{gen.name})"

    code_size = options.optimize_for == OptimizeMode.CODE_SIZE
    return DescriptorEntry(
        name=None if code_size else proto_name,
        number=fd.number,
        label=label,
        type=gen.type_macro,
        quantifier_offset=quantifier_offset,
        value_offset=f"offsetof({gen.classname}, {gen.name})",
        descriptor_addr=gen.descriptor_addr,
        default_value=default_value,
        flags=flags,
    )


def make_field_generator(
    fd: FieldDescriptor,
    message: MessageType,
    file: SchemaFile,
    schema: SchemaSet,
) -> FieldGenerator | None:
    """Pick the generator variant for a field; None for unsupported types."""
    if fd.type in UNSUPPORTED_TYPES:
        return None
    if fd.type == FieldType.MESSAGE:
        variant = FieldVariant.MESSAGE
    elif fd.type == FieldType.STRING:
        variant = FieldVariant.BYTES if fd.options.string_as_bytes else FieldVariant.STRING
    elif fd.type == FieldType.BYTES:
        variant = FieldVariant.BYTES
    elif fd.type == FieldType.ENUM:
        variant = FieldVariant.ENUM
    else:
        variant = FieldVariant.PRIMITIVE

    enum_type = None
    if variant in (FieldVariant.MESSAGE, FieldVariant.ENUM) and not fd.type_name:
        raise SchemaError(
            f"{fd.type} field has no type name",
            file=file.name,
            message=message.full_name,
            field=fd.name,
        )
    if variant == FieldVariant.ENUM:
        enum_type = schema.find_enum(fd.type_name)
        if enum_type is None:
            raise SchemaError(
                f"unknown enum type {fd.type_name}",
                file=file.name,
                message=message.full_name,
                field=fd.name,
            )
    return FieldGenerator(fd, variant, message, file, enum_type)


class FieldGeneratorSet:
    """The field generators of one message, in declaration order."""

    def __init__(self, message: MessageType, file: SchemaFile, schema: SchemaSet | None = None):
        self.message = message
        schema = schema if schema is not None else SchemaSet(files=[file])
        self._generators: list[FieldGenerator] = []
        for fd in message.fields:
            gen = make_field_generator(fd, message, file, schema)
            if gen is None:
                raise UnsupportedSchemaError(
                    f"{fd.type} fields are not supported; the message cannot be generated",
                    file=file.name,
                    message=message.full_name,
                    field=fd.name,
                )
            self._generators.append(gen)
        self._by_identity = {id(gen.field): gen for gen in self._generators}
        _LOG.debug("%s: %d field generators", message.full_name, len(self._generators))

    def get(self, fd: FieldDescriptor) -> FieldGenerator:
        """Return the generator of a field of this message."""
        gen = self._by_identity.get(id(fd))
        if gen is None or gen.field is not fd:
            raise ContractViolation(
                "field does not belong to this message",
                message=self.message.full_name,
                field=fd.name,
            )
        return gen

    def __iter__(self) -> Iterator[FieldGenerator]:
        return iter(self._generators)

    def __len__(self) -> int:
        return len(self._generators)
