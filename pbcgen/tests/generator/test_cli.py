"""Tests for CLI interface."""

import io
import json
import os
import sys

import click
import pytest
from click.testing import CliRunner
from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2

from pbcgen.generator.cli import cli, parse_plugin_parameter, plugin
from pbcgen.generator.config import GeneratorConfig

FILE_DIR = os.path.dirname(os.path.realpath(__file__))

FDP = descriptor_pb2.FieldDescriptorProto


def sample_request(field_type=FDP.TYPE_INT32, parameter=""):
    proto = descriptor_pb2.FileDescriptorProto(name="demo.proto", package="demo")
    msg = proto.message_type.add(name="Ping")
    seq = msg.field.add(name="seq", number=1, type=field_type, label=FDP.LABEL_OPTIONAL)
    if field_type == FDP.TYPE_GROUP:
        seq.type_name = ".demo.Ping.Seq"
    request = plugin_pb2.CodeGeneratorRequest(parameter=parameter)
    request.proto_file.append(proto)
    request.file_to_generate.append("demo.proto")
    return request


def describe_gen_command():
    def generates_header_and_source(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-i", f"{FILE_DIR}/addressbook.json", "-o", str(tmp_path)])
        expect(result.exit_code) == 0

        header = (tmp_path / "tutorial" / "addressbook.pb-c.h").read_text()
        source = (tmp_path / "tutorial" / "addressbook.pb-c.c").read_text()
        expect("struct  Tutorial__Person\n" in header) == True
        expect("typedef enum _Tutorial__Person__PhoneType {" in header) == True
        expect("struct Tutorial__Directory_Service" in header) == True
        expect("const ProtobufCMessageDescriptor tutorial__address_book__descriptor =" in source) == True
        expect("TUTORIAL__PERSON__PHONE_TYPE__HOME" in source) == True

    def passes_version_options(expect, tmp_path):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "gen",
                "-i",
                f"{FILE_DIR}/addressbook.json",
                "-o",
                str(tmp_path),
                "--min-header-version",
                "1002000",
            ],
        )
        expect(result.exit_code) == 0
        header = (tmp_path / "tutorial" / "addressbook.pb-c.h").read_text()
        expect("#if PROTOBUF_C_VERSION_NUMBER < 1002000" in header) == True

    def reads_plugin_requests(expect, tmp_path):
        request_file = tmp_path / "request.bin"
        request_file.write_bytes(sample_request().SerializeToString())
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "--request", "-i", str(request_file), "-o", str(tmp_path)])
        expect(result.exit_code) == 0
        expect((tmp_path / "demo.pb-c.h").exists()) == True
        expect((tmp_path / "demo.pb-c.c").exists()) == True

    def fails_without_writing_on_group_field(expect, tmp_path):
        request_file = tmp_path / "request.bin"
        request_file.write_bytes(sample_request(FDP.TYPE_GROUP).SerializeToString())
        out_dir = tmp_path / "out"
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "--request", "-i", str(request_file), "-o", str(out_dir)])
        expect(result.exit_code) == 1
        expect("Error:" in result.output) == True
        expect(out_dir.exists()) == False

    def fails_with_missing_input(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["gen", "-o", "/tmp"])
        expect(result.exit_code) == 2


def describe_info_command():
    def displays_layouts(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", f"{FILE_DIR}/addressbook.json"])
        expect(result.exit_code) == 0
        expect("tutorial.Person" in result.output) == True
        expect("tutorial.Person.PhoneNumber" in result.output) == True
        expect("n_phones" in result.output) == True

    def outputs_json(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", f"{FILE_DIR}/addressbook.json", "--json"])
        expect(result.exit_code) == 0
        data = json.loads(result.output)
        person = data["tutorial.Person"]
        expect(person["struct"]) == "Tutorial__Person"
        expect([f["number"] for f in person["fields"]]) == [1, 2, 3, 4, 5]
        expect(person["fields"][2]["quantifier_offset"]) == "offsetof(Tutorial__Person, has_email)"
        expect(person["fields"][4]["flags"]) == "PROTOBUF_C_FIELD_FLAG_DEPRECATED"
        expect(data["tutorial.AddressBook"]["layout"][0]) == {
            "name": "n_people",
            "type": "size_t",
            "role": "count",
        }


def describe_plugin_parameters():
    def defaults_when_empty(expect):
        verbose, config = parse_plugin_parameter("")
        expect(verbose) == False
        expect(config) == GeneratorConfig()

    def reads_options(expect):
        verbose, config = parse_plugin_parameter("verbose,min-header-version=1002000")
        expect(verbose) == True
        expect(config.min_header_version) == 1002000
        expect(config.compiler_version) == GeneratorConfig().compiler_version

    def rejects_unknown_options(expect):
        with pytest.raises(click.ClickException):
            parse_plugin_parameter("bogus")


def describe_plugin():
    def _run_plugin(monkeypatch, request):
        stdout = io.BytesIO()
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(request.SerializeToString())))
        monkeypatch.setattr(sys, "stdout", io.TextIOWrapper(stdout))
        code = plugin()
        return code, plugin_pb2.CodeGeneratorResponse.FromString(stdout.getvalue())

    def writes_response_to_stdout(expect, monkeypatch):
        code, response = _run_plugin(monkeypatch, sample_request())
        expect(code) == 0
        expect(response.error) == ""
        expect([f.name for f in response.file]) == ["demo.pb-c.h", "demo.pb-c.c"]

    def reports_bad_parameters(expect, monkeypatch):
        code, response = _run_plugin(monkeypatch, sample_request(parameter="bogus"))
        expect(code) == 0
        expect(response.error.startswith("invalid parameter")) == True
        expect(len(response.file)) == 0

    def reports_generation_errors(expect, monkeypatch):
        code, response = _run_plugin(monkeypatch, sample_request(FDP.TYPE_GROUP))
        expect("seq" in response.error) == True
        expect(len(response.file)) == 0
