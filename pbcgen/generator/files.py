"""Assembly of the two C units generated for a schema file.

The declaration unit (``.pb-c.h``) and metadata unit (``.pb-c.c``) are written
in a fixed order so that every symbol is declared before it is used: forward
declarations before structs, enums before the structs embedding them, and
descriptor declarations after all types.
"""

import logging

from .config import GeneratorConfig
from .enums import EnumGenerator
from .errors import SchemaError
from .extensions import ExtensionGenerator
from .messages import MessageGenerator
from .names import filename_identifier, strip_proto
from .services import ServiceGenerator
from .templating import render
from .types import SchemaFile, SchemaSet

_LOG = logging.getLogger(__name__)

Section = tuple[str, str]


class FileGenerator:
    """Owns the generators for every entity declared in one schema file."""

    def __init__(
        self,
        file: SchemaFile,
        schema: SchemaSet | None = None,
        config: GeneratorConfig | None = None,
    ):
        self.file = file
        self.schema = schema if schema is not None else SchemaSet(files=[file])
        self.config = config if config is not None else GeneratorConfig()
        self.dependencies = [self._dependency(name) for name in file.dependencies]

        self.message_generators = [
            MessageGenerator(m, file, self.schema) for m in file.message_types
        ]
        self.enum_generators = [EnumGenerator(e, file) for e in file.enum_types]
        self.service_generators = [ServiceGenerator(s, file) for s in file.services]
        self.extension_generators = [ExtensionGenerator(e, file) for e in file.extensions]
        _LOG.debug(
            "%s: %d messages, %d enums, %d services, %d extensions",
            file.name,
            len(self.message_generators),
            len(self.enum_generators),
            len(self.service_generators),
            len(self.extension_generators),
        )

    def _dependency(self, name: str) -> SchemaFile:
        dep = self.schema.file(name)
        if dep is None:
            raise SchemaError(f"dependency {name} is not part of the request", file=self.file.name)
        return dep

    @property
    def basename(self) -> str:
        return strip_proto(self.file.name)

    @property
    def header_name(self) -> str:
        return self.basename + self.config.header_suffix

    @property
    def source_name(self) -> str:
        return self.basename + self.config.source_suffix

    def header_sections(self) -> list[Section]:
        """The declaration unit as named sections, in output order."""
        options = self.file.options
        ident = filename_identifier(self.file.name)
        messages = self.message_generators

        includes = "".join(
            f'#include "{strip_proto(dep.name)}{self.config.header_suffix}"\n'
            for dep in self.dependencies
            if not dep.options.no_generate
        )
        enums = "".join(m.enum_definitions() for m in messages)
        enums += "".join(e.definition() for e in self.enum_generators)
        descriptors = "".join(e.descriptor_declaration() for e in self.enum_generators)
        descriptors += "".join(m.descriptor_declarations() for m in messages)
        descriptors += "".join(s.descriptor_declarations() for s in self.service_generators)

        return [
            (
                "preamble",
                render(
                    "file_preamble.h.j2",
                    filename=self.file.name,
                    ident=ident,
                    config=self.config,
                ),
            ),
            ("includes", includes + "\n"),
            ("forward_declarations", "".join(m.struct_typedef() for m in messages) + "\n"),
            ("enums", "\n/* --- enums --- */\n\n" + enums),
            (
                "messages",
                "\n/* --- messages --- */\n\n" + "".join(m.struct_definition() for m in messages),
            ),
            (
                "helpers",
                "".join(
                    m.helper_declarations(options.gen_pack_helpers, options.gen_init_helpers)
                    for m in messages
                ),
            ),
            (
                "closures",
                "/* --- per-message closures --- */\n\n"
                + "".join(m.closure_typedef() for m in messages),
            ),
            (
                "services",
                "\n/* --- services --- */\n\n"
                + "".join(s.main_header() for s in self.service_generators),
            ),
            ("extensions", "".join(e.declaration() for e in self.extension_generators)),
            ("descriptors", "\n/* --- descriptors --- */\n\n" + descriptors),
            ("epilogue", render("file_epilogue.h.j2", ident=ident)),
        ]

    def source_sections(self) -> list[Section]:
        """The metadata unit as named sections, in output order."""
        options = self.file.options
        messages = self.message_generators
        return [
            (
                "preamble",
                render(
                    "file_preamble.c.j2",
                    filename=self.file.name,
                    header=self.header_name,
                ),
            ),
            (
                "helpers",
                "".join(
                    m.helper_definitions(options.gen_pack_helpers, options.gen_init_helpers)
                    for m in messages
                ),
            ),
            (
                "message_descriptors",
                "".join(m.message_descriptor(options.gen_init_helpers) for m in messages),
            ),
            ("enum_descriptors", "".join(e.descriptor() for e in self.enum_generators)),
            ("services", "".join(s.source() for s in self.service_generators)),
        ]

    def header(self) -> str:
        _LOG.debug("Writing %s", self.header_name)
        return "".join(text for _, text in self.header_sections())

    def source(self) -> str:
        _LOG.debug("Writing %s", self.source_name)
        return "".join(text for _, text in self.source_sections())


def generate(schema: SchemaSet, config: GeneratorConfig | None = None) -> dict[str, str]:
    """Generate both units for every target file of a schema set.

    Returns output file names mapped to their content. Any error aborts the
    whole set; nothing partial is returned.
    """
    missing = [name for name in schema.targets if schema.file(name) is None]
    if missing:
        raise SchemaError(f"files to generate are not in the request: {', '.join(missing)}")

    outputs: dict[str, str] = {}
    for file in schema.target_files():
        if file.options.no_generate:
            _LOG.info("Skipping %s (no_generate)", file.name)
            continue
        _LOG.info("Generating code for %s", file.name)
        generator = FileGenerator(file, schema, config)
        outputs[generator.header_name] = generator.header()
        outputs[generator.source_name] = generator.source()
    return outputs
