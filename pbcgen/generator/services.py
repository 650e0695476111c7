"""Service declarations and descriptors.

The file generator calls ``main_header`` and ``descriptor_declarations`` while
writing the declaration unit, and ``source`` while writing the metadata unit.
"""

from dataclasses import dataclass

from .names import camel_to_lower, full_name_to_c, full_name_to_lower, full_name_to_upper
from .templating import render
from .types import MethodDescriptor, SchemaFile, ServiceType


@dataclass(frozen=True)
class MethodInfo:
    name: str
    lcname: str
    input_type: str
    output_closure: str
    input_descriptor: str
    output_descriptor: str


@dataclass(frozen=True)
class ServiceGenerator:
    service: ServiceType
    file: SchemaFile

    @property
    def classname(self) -> str:
        return full_name_to_c(self.service.full_name)

    @property
    def lcfullname(self) -> str:
        return full_name_to_lower(self.service.full_name)

    @property
    def ucfullname(self) -> str:
        return full_name_to_upper(self.service.full_name)

    def methods(self) -> list[MethodInfo]:
        return [self._method(m) for m in self.service.methods]

    def _method(self, method: MethodDescriptor) -> MethodInfo:
        return MethodInfo(
            name=method.name,
            lcname=camel_to_lower(method.name),
            input_type=full_name_to_c(method.input_type),
            output_closure=full_name_to_c(method.output_type) + "_Closure",
            input_descriptor=f"&{full_name_to_lower(method.input_type)}__descriptor",
            output_descriptor=f"&{full_name_to_lower(method.output_type)}__descriptor",
        )

    def methods_by_name(self) -> list[tuple[int, str]]:
        return sorted(enumerate(m.name for m in self.service.methods), key=lambda item: item[1])

    # Declaration unit

    def vfuncs(self) -> str:
        return render("service_vfuncs.h.j2", gen=self, methods=self.methods())

    def init_macros(self) -> str:
        return render("service_init.h.j2", gen=self, methods=self.methods())

    def callers_declarations(self) -> str:
        return render("service_callers.j2", gen=self, methods=self.methods(), body=False)

    def main_header(self) -> str:
        return self.vfuncs() + self.init_macros() + self.callers_declarations()

    def descriptor_declarations(self) -> str:
        return f"extern const ProtobufCServiceDescriptor {self.lcfullname}__descriptor;\n"

    # Metadata unit

    def service_descriptor(self) -> str:
        return render(
            "service_descriptor.c.j2",
            gen=self,
            methods=self.methods(),
            by_name=self.methods_by_name(),
        )

    def init(self) -> str:
        return render("service_init.c.j2", gen=self)

    def callers_implementations(self) -> str:
        return render("service_callers.j2", gen=self, methods=self.methods(), body=True)

    def source(self) -> str:
        return self.service_descriptor() + self.callers_implementations() + self.init()
