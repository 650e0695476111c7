"""Conversion between protoc plugin messages and the schema model.

protoc hands plugins a ``CodeGeneratorRequest`` holding every file of the
compilation in dependency order. The protobuf-c specific options
(``pb_c_file``, ``pb_c_msg``, ``pb_c_field``) are extensions this process has
no generated classes for, so they arrive as unknown fields of the standard
option messages and are decoded here against a small private descriptor pool.
"""

import logging
from functools import cache

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory, unknown_fields
from google.protobuf.compiler import plugin_pb2

from .config import GeneratorConfig
from .errors import GenerationError, UnsupportedSchemaError
from .files import generate
from .types import (
    EnumType,
    EnumValue,
    ExtensionDescriptor,
    FieldDescriptor,
    FieldOptions,
    FieldType,
    FileOptions,
    Label,
    MessageOptions,
    MessageType,
    MethodDescriptor,
    OneofDescriptor,
    OptimizeMode,
    SchemaFile,
    SchemaSet,
    ServiceType,
    Syntax,
)

_LOG = logging.getLogger(__name__)

# Extension number of pb_c_file / pb_c_msg / pb_c_field in protobuf-c.proto.
PROTOBUF_C_OPTIONS_EXTENSION = 1053

_BOOL = descriptor_pb2.FieldDescriptorProto.TYPE_BOOL
_STRING = descriptor_pb2.FieldDescriptorProto.TYPE_STRING

_OPTION_MESSAGES = {
    "ProtobufCFileOptions": [
        ("no_generate", 1, _BOOL),
        ("gen_pack_helpers", 2, _BOOL),
        ("gen_init_helpers", 3, _BOOL),
        ("use_oneof_field_name", 4, _BOOL),
        ("c_package", 5, _STRING),
    ],
    "ProtobufCMessageOptions": [
        ("base_field_name", 1, _BOOL),
        ("gen_pack_helpers", 2, _BOOL),
        ("gen_init_helpers", 3, _BOOL),
    ],
    "ProtobufCFieldOptions": [
        ("string_as_bytes", 1, _BOOL),
    ],
}

_FDP = descriptor_pb2.FieldDescriptorProto


@cache
def _option_class(name: str) -> type:
    """Message class for one of the protobuf-c option messages."""
    return message_factory.GetMessageClass(_options_pool().FindMessageTypeByName(f"protobuf_c.{name}"))


@cache
def _options_pool() -> descriptor_pool.DescriptorPool:
    proto = descriptor_pb2.FileDescriptorProto(
        name="pbcgen/protobuf-c-options.proto",
        package="protobuf_c",
        syntax="proto2",
    )
    for message_name, fields in _OPTION_MESSAGES.items():
        message = proto.message_type.add(name=message_name)
        for field_name, number, field_type in fields:
            message.field.add(
                name=field_name,
                number=number,
                type=field_type,
                label=_FDP.LABEL_OPTIONAL,
            )
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(proto.SerializeToString())
    return pool


def _protobuf_c_options(options, message_name: str):
    """Decode the protobuf-c extension carried by a standard options message."""
    result = _option_class(message_name)()
    for unknown in unknown_fields.UnknownFieldSet(options):
        if unknown.field_number == PROTOBUF_C_OPTIONS_EXTENSION and isinstance(unknown.data, bytes):
            result.MergeFromString(unknown.data)
    return result


def _optional(message, name: str) -> bool | None:
    return getattr(message, name) if message.HasField(name) else None


def _file_options(proto: descriptor_pb2.FileDescriptorProto) -> FileOptions:
    ext = _protobuf_c_options(proto.options, "ProtobufCFileOptions")
    optimize_for = OptimizeMode.SPEED
    if proto.options.HasField("optimize_for"):
        mode = descriptor_pb2.FileOptions.OptimizeMode.Name(proto.options.optimize_for)
        optimize_for = OptimizeMode(mode.lower())
    return FileOptions(
        no_generate=ext.no_generate,
        optimize_for=optimize_for,
        use_oneof_field_name=ext.use_oneof_field_name,
        gen_pack_helpers=_optional(ext, "gen_pack_helpers"),
        gen_init_helpers=ext.gen_init_helpers if ext.HasField("gen_init_helpers") else True,
    )


def _field_type(fd: descriptor_pb2.FieldDescriptorProto) -> FieldType:
    return FieldType(_FDP.Type.Name(fd.type).removeprefix("TYPE_").lower())


def _label(fd: descriptor_pb2.FieldDescriptorProto) -> Label:
    return Label(_FDP.Label.Name(fd.label).removeprefix("LABEL_").lower())


def _field(fd: descriptor_pb2.FieldDescriptorProto, oneof_map: dict[int, int]) -> FieldDescriptor:
    ext = _protobuf_c_options(fd.options, "ProtobufCFieldOptions")
    oneof_index = None
    if fd.HasField("oneof_index") and not fd.proto3_optional:
        oneof_index = oneof_map[fd.oneof_index]
    return FieldDescriptor(
        name=fd.name,
        number=fd.number,
        type=_field_type(fd),
        label=_label(fd),
        type_name=fd.type_name.lstrip(".") or None,
        oneof_index=oneof_index,
        default_value=fd.default_value if fd.HasField("default_value") else None,
        proto3_optional=fd.proto3_optional,
        options=FieldOptions(
            packed=_optional(fd.options, "packed"),
            deprecated=fd.options.deprecated,
            string_as_bytes=ext.string_as_bytes,
        ),
    )


def _enum(proto: descriptor_pb2.EnumDescriptorProto, scope: str) -> EnumType:
    return EnumType(
        name=proto.name,
        full_name=_qualify(scope, proto.name),
        values=[EnumValue(name=v.name, number=v.number) for v in proto.value],
    )


def _qualify(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _message(proto: descriptor_pb2.DescriptorProto, scope: str) -> MessageType:
    full_name = _qualify(scope, proto.name)

    # proto3 "optional" fields live in synthetic oneofs of their own; those
    # are presence markers, not real oneofs.
    synthetic = {fd.oneof_index for fd in proto.field if fd.proto3_optional}
    oneof_map: dict[int, int] = {}
    oneofs = []
    for index, oneof in enumerate(proto.oneof_decl):
        if index in synthetic:
            continue
        oneof_map[index] = len(oneofs)
        oneofs.append(OneofDescriptor(name=oneof.name))

    ext = _protobuf_c_options(proto.options, "ProtobufCMessageOptions")
    return MessageType(
        name=proto.name,
        full_name=full_name,
        fields=[_field(fd, oneof_map) for fd in proto.field],
        nested_types=[_message(m, full_name) for m in proto.nested_type],
        enum_types=[_enum(e, full_name) for e in proto.enum_type],
        oneofs=oneofs,
        options=MessageOptions(
            gen_pack_helpers=_optional(ext, "gen_pack_helpers"),
            gen_init_helpers=_optional(ext, "gen_init_helpers"),
        ),
    )


def _extension(fd: descriptor_pb2.FieldDescriptorProto, scope: str) -> ExtensionDescriptor:
    return ExtensionDescriptor(
        name=fd.name,
        full_name=_qualify(scope, fd.name),
        number=fd.number,
        extendee=fd.extendee.lstrip("."),
        type=_field_type(fd),
        label=_label(fd),
        type_name=fd.type_name.lstrip(".") or None,
    )


def _syntax(proto: descriptor_pb2.FileDescriptorProto) -> Syntax:
    if proto.syntax in ("", "proto2"):
        return Syntax.PROTO2
    if proto.syntax == "proto3":
        return Syntax.PROTO3
    raise UnsupportedSchemaError(f"syntax {proto.syntax!r} is not supported", file=proto.name)


def schema_file_from_proto(proto: descriptor_pb2.FileDescriptorProto) -> SchemaFile:
    """Convert one ``FileDescriptorProto`` into the schema model."""
    package = proto.package
    return SchemaFile(
        name=proto.name,
        package=package,
        dependencies=list(proto.dependency),
        syntax=_syntax(proto),
        options=_file_options(proto),
        message_types=[_message(m, package) for m in proto.message_type],
        enum_types=[_enum(e, package) for e in proto.enum_type],
        services=[
            ServiceType(
                name=s.name,
                full_name=_qualify(package, s.name),
                methods=[
                    MethodDescriptor(
                        name=m.name,
                        input_type=m.input_type.lstrip("."),
                        output_type=m.output_type.lstrip("."),
                    )
                    for m in s.method
                ],
            )
            for s in proto.service
        ],
        extensions=[_extension(e, package) for e in proto.extension],
    )


def schema_set_from_request(request: plugin_pb2.CodeGeneratorRequest) -> SchemaSet:
    return SchemaSet(
        files=[schema_file_from_proto(f) for f in request.proto_file],
        targets=list(request.file_to_generate),
        parameter=request.parameter,
    )


def process_request(
    request: plugin_pb2.CodeGeneratorRequest,
    config: GeneratorConfig | None = None,
) -> plugin_pb2.CodeGeneratorResponse:
    """Generate code for a request.

    Generation errors are reported through ``CodeGeneratorResponse.error``
    and leave the response without files.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    response.supported_features |= plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    try:
        outputs = generate(schema_set_from_request(request), config)
    except GenerationError as err:
        _LOG.error("%s", err)
        response.error = str(err)
        return response

    for name, content in outputs.items():
        response.file.add(name=name, content=content)
    return response
