"""protobuf-c code generator."""

from .config import GeneratorConfig as GeneratorConfig
from .errors import ContractViolation as ContractViolation
from .errors import GenerationError as GenerationError
from .errors import SchemaError as SchemaError
from .errors import UnsupportedSchemaError as UnsupportedSchemaError
from .fields import DescriptorEntry as DescriptorEntry
from .fields import FieldFlag as FieldFlag
from .fields import FieldGenerator as FieldGenerator
from .fields import FieldGeneratorSet as FieldGeneratorSet
from .fields import descriptor_entry as descriptor_entry
from .files import FileGenerator as FileGenerator
from .files import generate as generate
from .types import *
