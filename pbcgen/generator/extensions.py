"""Extension identifiers.

The runtime cannot encode extensions, so only the field number is exposed.
"""

from dataclasses import dataclass

from .names import full_name_to_upper
from .types import ExtensionDescriptor, SchemaFile


@dataclass(frozen=True)
class ExtensionGenerator:
    extension: ExtensionDescriptor
    file: SchemaFile

    def declaration(self) -> str:
        ext = self.extension
        return (
            f"/* extension {ext.full_name} of {ext.extendee.lstrip('.')} */\n"
            f"#define {full_name_to_upper(ext.full_name)}__FIELD_NUMBER {ext.number}\n"
        )
