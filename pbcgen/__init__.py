"""pbcgen - protobuf-c code generator."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pbcgen")
except PackageNotFoundError:
    __version__ = "(local)"
