"""Enum typedefs and enum descriptors."""

from dataclasses import dataclass

from .names import full_name_to_c, full_name_to_lower, full_name_to_upper
from .templating import render
from .types import EnumType, EnumValue, SchemaFile


def int_ranges(numbers: list[int]) -> list[tuple[int, int]]:
    """Runs of consecutive values as (first value, index of first value).

    ``numbers`` must be sorted. A terminating ``(0, len(numbers))`` entry is
    appended, as the runtime expects.
    """
    ranges: list[tuple[int, int]] = []
    for index, number in enumerate(numbers):
        if index == 0 or number != numbers[index - 1] + 1:
            ranges.append((number, index))
    ranges.append((0, len(numbers)))
    return ranges


@dataclass(frozen=True)
class EnumGenerator:
    enum: EnumType
    file: SchemaFile

    @property
    def classname(self) -> str:
        return full_name_to_c(self.enum.full_name)

    @property
    def lcclassname(self) -> str:
        return full_name_to_lower(self.enum.full_name)

    @property
    def ucclassname(self) -> str:
        return full_name_to_upper(self.enum.full_name)

    def value_c_name(self, value: EnumValue) -> str:
        return f"{self.ucclassname}__{value.name}"

    def values_by_number(self) -> list[EnumValue]:
        """Values sorted by number, aliases dropped."""
        seen: set[int] = set()
        unique = []
        for value in sorted(self.enum.values, key=lambda v: v.number):
            if value.number not in seen:
                seen.add(value.number)
                unique.append(value)
        return unique

    def definition(self) -> str:
        return render("enum.h.j2", gen=self)

    def descriptor_declaration(self) -> str:
        return f"extern const ProtobufCEnumDescriptor    {self.lcclassname}__descriptor;\n"

    def descriptor(self) -> str:
        by_number = self.values_by_number()
        # Aliases keep their own name entry, pointing at the canonical value.
        index_of = {v.number: index for index, v in enumerate(by_number)}
        by_name = sorted(
            ((index_of[v.number], v) for v in self.enum.values),
            key=lambda item: item[1].name,
        )
        ranges = int_ranges([v.number for v in by_number])
        return render(
            "enum_descriptor.c.j2",
            gen=self,
            by_number=by_number,
            by_name=by_name,
            ranges=[f"{{{start}, {index}}}" for start, index in ranges],
            range_count=len(ranges) - 1,
        )
