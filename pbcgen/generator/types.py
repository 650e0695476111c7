"""Schema model handed to the code generator.

The tree is fully resolved: type references are fully-qualified names and
every file listed as a dependency is present in the enclosing ``SchemaSet``.
Nothing in the generator mutates it.
"""

from dataclasses import dataclass, field
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin


class FieldType(StrEnum):
    """Value type of a field."""

    DOUBLE = auto()
    FLOAT = auto()
    INT64 = auto()
    UINT64 = auto()
    INT32 = auto()
    FIXED64 = auto()
    FIXED32 = auto()
    BOOL = auto()
    STRING = auto()
    GROUP = auto()
    MESSAGE = auto()
    BYTES = auto()
    UINT32 = auto()
    ENUM = auto()
    SFIXED32 = auto()
    SFIXED64 = auto()
    SINT32 = auto()
    SINT64 = auto()


class Label(StrEnum):
    REQUIRED = auto()
    OPTIONAL = auto()
    REPEATED = auto()


class Syntax(StrEnum):
    PROTO2 = auto()
    PROTO3 = auto()


class OptimizeMode(StrEnum):
    SPEED = auto()
    CODE_SIZE = auto()
    LITE_RUNTIME = auto()


SCALAR_TYPES = frozenset(
    [
        FieldType.DOUBLE,
        FieldType.FLOAT,
        FieldType.INT64,
        FieldType.UINT64,
        FieldType.INT32,
        FieldType.FIXED64,
        FieldType.FIXED32,
        FieldType.BOOL,
        FieldType.UINT32,
        FieldType.SFIXED32,
        FieldType.SFIXED64,
        FieldType.SINT32,
        FieldType.SINT64,
    ]
)

# Repeated fields of these types may use packed encoding. Strings, bytes,
# groups and messages never do.
PACKABLE_TYPES = SCALAR_TYPES | {FieldType.ENUM}


@dataclass
class FieldOptions(DataClassJsonMixin):
    """Per-field options.

    ``packed`` is tri-state: None means the field did not say, which is not
    the same as an explicit ``False``.
    """

    packed: bool | None = None
    deprecated: bool = False
    string_as_bytes: bool = False


@dataclass
class FieldDescriptor(DataClassJsonMixin):
    """A single field of a message (or an extension's field part)."""

    name: str
    number: int
    type: FieldType
    label: Label
    type_name: str | None = None
    oneof_index: int | None = None
    default_value: str | None = None
    proto3_optional: bool = False
    options: FieldOptions = field(default_factory=FieldOptions)

    @property
    def has_default_value(self) -> bool:
        return self.default_value is not None

    @property
    def in_oneof(self) -> bool:
        return self.oneof_index is not None


@dataclass
class OneofDescriptor(DataClassJsonMixin):
    name: str


@dataclass
class EnumValue(DataClassJsonMixin):
    name: str
    number: int


@dataclass
class EnumType(DataClassJsonMixin):
    name: str
    full_name: str
    values: list[EnumValue] = field(default_factory=list)


@dataclass
class MessageOptions(DataClassJsonMixin):
    """Per-message overrides of the file's helper options (None = inherit)."""

    gen_pack_helpers: bool | None = None
    gen_init_helpers: bool | None = None


@dataclass
class MessageType(DataClassJsonMixin):
    name: str
    full_name: str
    fields: list[FieldDescriptor] = field(default_factory=list)
    nested_types: list["MessageType"] = field(default_factory=list)
    enum_types: list[EnumType] = field(default_factory=list)
    oneofs: list[OneofDescriptor] = field(default_factory=list)
    options: MessageOptions = field(default_factory=MessageOptions)

    def oneof_of(self, fd: FieldDescriptor) -> OneofDescriptor | None:
        """Return the oneof a field belongs to, if any."""
        if fd.oneof_index is None:
            return None
        return self.oneofs[fd.oneof_index]


@dataclass
class MethodDescriptor(DataClassJsonMixin):
    name: str
    input_type: str
    output_type: str


@dataclass
class ServiceType(DataClassJsonMixin):
    name: str
    full_name: str
    methods: list[MethodDescriptor] = field(default_factory=list)


@dataclass
class ExtensionDescriptor(DataClassJsonMixin):
    name: str
    full_name: str
    number: int
    extendee: str
    type: FieldType
    label: Label = Label.OPTIONAL
    type_name: str | None = None


@dataclass
class FileOptions(DataClassJsonMixin):
    """File-level options.

    ``gen_pack_helpers`` is tri-state: an explicit value also applies to
    nested messages, while None keeps pack helpers on top-level messages only.
    """

    no_generate: bool = False
    optimize_for: OptimizeMode = OptimizeMode.SPEED
    use_oneof_field_name: bool = False
    gen_pack_helpers: bool | None = None
    gen_init_helpers: bool = True


@dataclass
class SchemaFile(DataClassJsonMixin):
    name: str
    package: str = ""
    dependencies: list[str] = field(default_factory=list)
    syntax: Syntax = Syntax.PROTO2
    options: FileOptions = field(default_factory=FileOptions)
    message_types: list[MessageType] = field(default_factory=list)
    enum_types: list[EnumType] = field(default_factory=list)
    services: list[ServiceType] = field(default_factory=list)
    extensions: list[ExtensionDescriptor] = field(default_factory=list)

    def iter_enums(self):
        """Yield every enum in the file, nested ones included."""

        def walk(message: MessageType):
            for nested in message.nested_types:
                yield from walk(nested)
            yield from message.enum_types

        for message in self.message_types:
            yield from walk(message)
        yield from self.enum_types


@dataclass
class SchemaSet(DataClassJsonMixin):
    """Every file of one compiler invocation, in dependency order."""

    files: list[SchemaFile]
    targets: list[str] = field(default_factory=list)
    parameter: str = ""

    def file(self, name: str) -> SchemaFile | None:
        for f in self.files:
            if f.name == name:
                return f
        return None

    def find_enum(self, full_name: str) -> EnumType | None:
        full_name = full_name.lstrip(".")
        for f in self.files:
            for enum in f.iter_enums():
                if enum.full_name == full_name:
                    return enum
        return None

    def target_files(self) -> list[SchemaFile]:
        """Files to generate; all of them when no targets are named."""
        if not self.targets:
            return list(self.files)
        return [f for f in self.files if f.name in self.targets]
