"""Errors raised while generating code for a schema file."""


class GenerationError(RuntimeError):
    """Generation of a file failed; no output for it is usable.

    The file, message and field names are kept so the caller can point at the
    offending schema construct.
    """

    def __init__(
        self,
        reason: str,
        *,
        file: str | None = None,
        message: str | None = None,
        field: str | None = None,
    ):
        self.reason = reason
        self.file = file
        self.message = message
        self.field = field
        super().__init__(self._describe())

    def _describe(self) -> str:
        where = []
        if self.file:
            where.append(f"file {self.file}")
        if self.message:
            where.append(f"message {self.message}")
        if self.field:
            where.append(f"field {self.field}")
        if not where:
            return self.reason
        return f"{', '.join(where)}: {self.reason}"


class UnsupportedSchemaError(GenerationError):
    """The schema uses a construct the generator cannot express (groups)."""


class SchemaError(GenerationError):
    """The schema tree is not fully resolved (missing file or type)."""


class ContractViolation(GenerationError):
    """A generator was used incorrectly by its caller.

    This is a bug in the generator, never a problem with the user's schema.
    """
