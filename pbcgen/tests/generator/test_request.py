"""Tests for reading protoc plugin requests."""

import pytest
from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from pbcgen.generator.errors import UnsupportedSchemaError
from pbcgen.generator.request import (
    PROTOBUF_C_OPTIONS_EXTENSION,
    _option_class,
    process_request,
    schema_file_from_proto,
    schema_set_from_request,
)
from pbcgen.generator.types import FieldType, Label, OptimizeMode, Syntax

FDP = descriptor_pb2.FieldDescriptorProto


def varint(value):
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def add_protobuf_c_options(options, message_name, **values):
    """Attach a protobuf-c option extension the way protoc serializes it."""
    payload = _option_class(message_name)(**values).SerializeToString()
    key = varint((PROTOBUF_C_OPTIONS_EXTENSION << 3) | 2)
    options.MergeFromString(key + varint(len(payload)) + payload)


def sample_proto(syntax="proto2"):
    proto = descriptor_pb2.FileDescriptorProto(name="pkg/test.proto", package="pkg", syntax=syntax)
    outer = proto.message_type.add(name="Outer")
    outer.field.add(name="id", number=1, type=FDP.TYPE_SINT64, label=FDP.LABEL_REQUIRED)
    outer.field.add(
        name="inner",
        number=2,
        type=FDP.TYPE_MESSAGE,
        label=FDP.LABEL_REPEATED,
        type_name=".pkg.Outer.Inner",
    )
    outer.field.add(
        name="kind",
        number=3,
        type=FDP.TYPE_ENUM,
        label=FDP.LABEL_OPTIONAL,
        type_name=".pkg.Outer.Kind",
        default_value="B",
    )
    outer.nested_type.add(name="Inner")
    kind = outer.enum_type.add(name="Kind")
    kind.value.add(name="A", number=0)
    kind.value.add(name="B", number=1)
    return proto


def proto3_sample():
    proto = descriptor_pb2.FileDescriptorProto(name="pkg/p3.proto", package="pkg", syntax="proto3")
    msg = proto.message_type.add(name="Msg")
    msg.oneof_decl.add(name="_maybe")
    msg.oneof_decl.add(name="choice")
    msg.field.add(
        name="maybe",
        number=1,
        type=FDP.TYPE_INT32,
        label=FDP.LABEL_OPTIONAL,
        oneof_index=0,
        proto3_optional=True,
    )
    msg.field.add(name="a", number=2, type=FDP.TYPE_STRING, label=FDP.LABEL_OPTIONAL, oneof_index=1)
    values = msg.field.add(name="values", number=3, type=FDP.TYPE_INT32, label=FDP.LABEL_REPEATED)
    values.options.packed = False
    msg.field.add(name="plain", number=4, type=FDP.TYPE_INT32, label=FDP.LABEL_REPEATED)
    return proto


def make_request(*protos, targets=None, parameter=""):
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.extend(protos)
    request.file_to_generate.extend(targets if targets is not None else [p.name for p in protos])
    return request


def describe_schema_file_from_proto():
    def converts_messages(expect):
        file = schema_file_from_proto(sample_proto())
        outer = file.message_types[0]
        expect(file.syntax) == Syntax.PROTO2
        expect(outer.full_name) == "pkg.Outer"
        expect(outer.nested_types[0].full_name) == "pkg.Outer.Inner"
        expect(outer.enum_types[0].full_name) == "pkg.Outer.Kind"

    def converts_fields(expect):
        fields = schema_file_from_proto(sample_proto()).message_types[0].fields
        expect(fields[0].type) == FieldType.SINT64
        expect(fields[0].label) == Label.REQUIRED
        expect(fields[1].type_name) == "pkg.Outer.Inner"
        expect(fields[1].label) == Label.REPEATED
        expect(fields[2].default_value) == "B"
        expect(fields[0].default_value) == None

    def drops_synthetic_oneofs(expect):
        message = schema_file_from_proto(proto3_sample()).message_types[0]
        expect([o.name for o in message.oneofs]) == ["choice"]
        expect(message.fields[0].proto3_optional) == True
        expect(message.fields[0].oneof_index) == None
        expect(message.fields[1].oneof_index) == 0

    def keeps_packed_tri_state(expect):
        fields = schema_file_from_proto(proto3_sample()).message_types[0].fields
        expect(fields[2].options.packed) == False
        expect(fields[3].options.packed) == None

    def reads_optimize_mode(expect):
        proto = sample_proto()
        proto.options.optimize_for = descriptor_pb2.FileOptions.CODE_SIZE
        expect(schema_file_from_proto(proto).options.optimize_for) == OptimizeMode.CODE_SIZE

    def reads_protobuf_c_file_options(expect):
        proto = sample_proto()
        add_protobuf_c_options(
            proto.options, "ProtobufCFileOptions", use_oneof_field_name=True, gen_pack_helpers=False
        )
        options = schema_file_from_proto(proto).options
        expect(options.use_oneof_field_name) == True
        expect(options.gen_pack_helpers) == False
        expect(options.gen_init_helpers) == True

    def reads_protobuf_c_field_options(expect):
        proto = sample_proto()
        field = proto.message_type[0].field.add(
            name="raw", number=4, type=FDP.TYPE_STRING, label=FDP.LABEL_OPTIONAL
        )
        add_protobuf_c_options(field.options, "ProtobufCFieldOptions", string_as_bytes=True)
        fields = schema_file_from_proto(proto).message_types[0].fields
        expect(fields[3].options.string_as_bytes) == True

    def reads_protobuf_c_message_options(expect):
        proto = sample_proto()
        add_protobuf_c_options(proto.message_type[0].options, "ProtobufCMessageOptions", gen_init_helpers=False)
        options = schema_file_from_proto(proto).message_types[0].options
        expect(options.gen_init_helpers) == False
        expect(options.gen_pack_helpers) == None

    def defaults_protobuf_c_options(expect):
        options = schema_file_from_proto(sample_proto()).options
        expect(options.no_generate) == False
        expect(options.gen_pack_helpers) == None

    def rejects_editions(expect):
        with pytest.raises(UnsupportedSchemaError):
            schema_file_from_proto(sample_proto(syntax="editions"))


def describe_schema_set_from_request():
    def keeps_targets_and_parameter(expect):
        schema = schema_set_from_request(make_request(sample_proto(), parameter="verbose"))
        expect(schema.targets) == ["pkg/test.proto"]
        expect(schema.parameter) == "verbose"
        expect(schema.find_enum(".pkg.Outer.Kind").name) == "Kind"


def describe_process_request():
    def returns_both_units(expect):
        response = process_request(make_request(sample_proto()))
        expect(response.error) == ""
        expect([f.name for f in response.file]) == ["pkg/test.pb-c.h", "pkg/test.pb-c.c"]

    def advertises_proto3_optional(expect):
        response = process_request(make_request(proto3_sample()))
        feature = plugin_pb2.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL
        expect(bool(response.supported_features & feature)) == True
        expect(len(response.file)) == 2

    def reports_errors_without_files(expect):
        proto = sample_proto()
        proto.message_type[0].field.add(
            name="legacy", number=9, type=FDP.TYPE_GROUP, label=FDP.LABEL_OPTIONAL, type_name=".pkg.Outer.Inner"
        )
        response = process_request(make_request(proto))
        expect("legacy" in response.error) == True
        expect(len(response.file)) == 0

    def reports_unknown_targets(expect):
        response = process_request(make_request(sample_proto(), targets=["pkg/nope.proto"]))
        expect("pkg/nope.proto" in response.error) == True
