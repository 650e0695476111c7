"""Jinja environment shared by the C generators."""

from jinja2 import Environment, PackageLoader, StrictUndefined

env = Environment(
    loader=PackageLoader("pbcgen.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
    undefined=StrictUndefined,
)


def render(template_name: str, **context: object) -> str:
    return env.get_template(template_name).render(**context)
