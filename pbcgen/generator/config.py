"""Generator configuration."""

from dataclasses import dataclass

# Oldest libprotobuf-c headers able to compile our output (1.3.0).
MIN_HEADER_VERSION = 1003000

# Version of this generator, in PROTOBUF_C_VERSION_NUMBER form (1.5.2).
COMPILER_VERSION = 1005002

HEADER_SUFFIX = ".pb-c.h"
SOURCE_SUFFIX = ".pb-c.c"


@dataclass(frozen=True)
class GeneratorConfig:
    """Settings for one compiler invocation.

    Version numbers are compared against the runtime's
    ``PROTOBUF_C_VERSION_NUMBER`` and ``PROTOBUF_C_MIN_COMPILER_VERSION`` by
    the C preprocessor when the generated header is compiled.
    """

    min_header_version: int = MIN_HEADER_VERSION
    compiler_version: int = COMPILER_VERSION
    header_suffix: str = HEADER_SUFFIX
    source_suffix: str = SOURCE_SUFFIX
