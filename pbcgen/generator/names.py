"""Identifier transforms shared by every generator.

Generated code and hand-written code that uses it both depend on these names,
so each function must stay a pure function of its input.
"""

C_KEYWORDS = frozenset(
    [
        "and", "and_eq", "asm", "auto", "bitand", "bitor", "bool", "break",
        "case", "catch", "char", "class", "compl", "const", "const_cast",
        "continue", "default", "delete", "do", "double", "dynamic_cast",
        "else", "enum", "explicit", "extern", "false", "float", "for",
        "friend", "goto", "if", "inline", "int", "long", "mutable",
        "namespace", "new", "not", "not_eq", "operator", "or", "or_eq",
        "private", "protected", "public", "register", "reinterpret_cast",
        "return", "short", "signed", "sizeof", "static", "static_cast",
        "struct", "switch", "template", "this", "throw", "true", "try",
        "typedef", "typeid", "typename", "union", "unsigned", "using",
        "virtual", "void", "volatile", "wchar_t", "while", "xor", "xor_eq",
    ]
)  # fmt: skip


def to_camel(name: str) -> str:
    """``foo_bar`` -> ``FooBar``."""
    out = []
    next_is_upper = True
    for c in name:
        if c == "_":
            next_is_upper = True
        elif next_is_upper:
            out.append(c.upper())
            next_is_upper = False
        else:
            out.append(c)
    return "".join(out)


def _split_camel(name: str, upper: bool) -> str:
    out = []
    was_upper = True
    for c in name:
        if c.isupper():
            if not was_upper:
                out.append("_")
            out.append(c if upper else c.lower())
            was_upper = True
        else:
            out.append(c.upper() if upper else c)
            was_upper = False
    return "".join(out)


def camel_to_upper(name: str) -> str:
    """``FooBar`` -> ``FOO_BAR``."""
    return _split_camel(name, upper=True)


def camel_to_lower(name: str) -> str:
    """``FooBar`` -> ``foo_bar``."""
    return _split_camel(name, upper=False)


def _parts(full_name: str) -> list[str]:
    return full_name.lstrip(".").split(".")


def full_name_to_c(full_name: str) -> str:
    """``foo.bar_baz.Qux`` -> ``Foo__BarBaz__Qux`` (C type name)."""
    return "__".join(to_camel(p) for p in _parts(full_name))


def full_name_to_lower(full_name: str) -> str:
    """``foo.BarBaz`` -> ``foo__bar_baz`` (C function/variable prefix)."""
    return "__".join(camel_to_lower(p) for p in _parts(full_name))


def full_name_to_upper(full_name: str) -> str:
    """``foo.BarBaz`` -> ``FOO__BAR_BAZ`` (C macro/enumerator prefix)."""
    return "__".join(camel_to_upper(p) for p in _parts(full_name))


def strip_proto(filename: str) -> str:
    for suffix in (".protodevel", ".proto"):
        if filename.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


def filename_identifier(filename: str) -> str:
    """Turn a file path into a C identifier (``a/b.proto`` -> ``a_2fb_2eproto``)."""
    out = []
    for c in filename:
        if c.isascii() and c.isalnum():
            out.append(c)
        else:
            out.append(f"_{ord(c):x}")
    return "".join(out)


def field_name(name: str) -> str:
    """Member name for a field, escaping C/C++ keywords."""
    result = name.lower()
    if result in C_KEYWORDS:
        result += "_"
    return result
