"""
Human readable rendering of registration errors.

Errors point at the offending dataclass field by printing the class with
the field underlined, followed by help text.
"""

import inspect
import os
import textwrap
import types
from dataclasses import dataclass
from typing import Annotated, Any, Callable, List, Literal, Sequence, Tuple, Union, get_args, get_origin

from .params import is_struct, struct_fields

NoneType = type(None)

Underliner = Callable[[str, str], Tuple[int, int]]


@dataclass(frozen=True)
class Colors:
    error: str = ""
    reset: str = ""


NO_COLORS = Colors()
ANSI_COLORS = Colors(error="\033[31m", reset="\033[0m")


def format_annotation(value_type: Any) -> str:
    """Short, module-free rendering of a type annotation."""
    if value_type is None or value_type is NoneType:
        return "None"
    if value_type is Ellipsis:
        return "..."

    origin = get_origin(value_type)
    args = get_args(value_type)

    if origin is Annotated:
        return format_annotation(args[0])
    if origin in (Union, types.UnionType):
        if len(args) == 2 and NoneType in args:
            inner = args[0] if args[1] is NoneType else args[1]
            return f"Optional[{format_annotation(inner)}]"
        return " | ".join(format_annotation(arg) for arg in args)
    if origin is Literal:
        return f"Literal[{', '.join(repr(arg) for arg in args)}]"
    if origin is not None:
        name = getattr(origin, "__name__", repr(origin))
        if not args:
            return name
        return f"{name}[{', '.join(format_annotation(arg) for arg in args)}]"
    return getattr(value_type, "__name__", repr(value_type))


def prefix_border(prefix: str, text: str) -> str:
    return "\n".join((prefix + line).rstrip() for line in text.split("\n"))


def format_text(prefix: str, text: str) -> str:
    """Dedent text and hang it off a prefix such as "help: "."""
    lines = textwrap.dedent(text).strip("\n").split("\n")
    indent = " " * len(prefix)
    return "\n".join([prefix + lines[0]] + [indent + line if line else "" for line in lines[1:]])


def ascii_table(header: str, rows: Sequence[str]) -> str:
    """Render a single column table.

    +--------+
    | style  |
    +--------+
    | form   |
    +--------+
    """
    width = max([len(header)] + [len(row) for row in rows])
    border = "+" + "-" * (width + 2) + "+"
    lines = [border, f"| {header.ljust(width)} |", border]
    lines.extend(f"| {row.ljust(width)} |" for row in rows)
    if rows:
        lines.append(border)
    return "\n".join(lines)


def inner_type_underliner(inner: str) -> Underliner:
    """Underline the first occurrence of `inner` inside the field's type."""

    def underline(name: str, type_text: str) -> Tuple[int, int]:
        pos = type_text.find(inner)
        if pos < 0:
            return 0, 0
        start = len(name) + pos
        return start, start + len(inner)

    return underline


def _format_tags(metadata: Any) -> str:
    if not metadata:
        return ""
    if metadata.get("embed"):
        return " = embed()"
    tags = ", ".join(f"{key}={value!r}" for key, value in metadata.items())
    return f" = param({tags})"


def print_struct_with_error(
    struct: Any,
    field_name: str,
    message: str,
    underliner: Underliner,
    colors: Colors = NO_COLORS,
) -> str:
    """Print a dataclass definition with one field underlined."""
    lines: List[str] = ["@dataclass", f"class {struct.__name__}:"]

    for struct_field in struct_fields(struct):
        name = f"{struct_field.name}: "
        type_text = format_annotation(struct_field.type)
        lines.append(f"    {name}{type_text}{_format_tags(struct_field.metadata)}")

        if struct_field.name != field_name:
            continue

        start, end = underliner(name, type_text)
        if start == 0 and end == 0:
            end = len(name) + len(type_text)
        pad = " " * (4 + start)
        lines.append(f"{pad}{colors.error}{'^' * (end - start)}{colors.reset}")
        lines.append(f"{pad}|")
        lines.append(f"{pad}{message}")

    return "\n".join(lines)


def _write_struct(parts: List[str], struct: Any, field_name: str, message: str, underliner: Underliner, colors: Colors):
    if is_struct(struct):
        output = print_struct_with_error(struct, field_name, message, underliner, colors)
        parts.append(prefix_border("| ", output))
        parts.append("")


INVALID_PARAM_HELP = """
Router.params.parser defines how types are parsed
By default builtin scalars and classes with a from_text classmethod are included
"""


def render_invalid_param(err: Any, colors: Colors = NO_COLORS) -> str:
    param_type = err.param_type if err.param_type is not None else getattr(err.field, "type", None)
    type_text = format_annotation(param_type) if param_type is not None else ""
    detail = err.error or f"cannot parse {type_text!r}"

    parts = [f"{colors.error}error{colors.reset}: {err.message}"]
    if err.field is not None:
        underliner = (lambda name, text: (0, 0)) if err.underline_all else inner_type_underliner(type_text)
        _write_struct(parts, err.struct, err.field.name, detail, underliner, colors)
    parts.append(format_text("help: ", INVALID_PARAM_HELP))
    return "\n".join(parts)


UNKNOWN_FIELD_HELP = """
field must be either:
  - an Extractor
  - a ParamExtractor
or {type!r} requires an extractor registered with Router.extractors
"""


def render_unknown_field(err: Any, colors: Colors = NO_COLORS) -> str:
    parts = [f"{colors.error}error{colors.reset}: cannot determine how to extract field"]
    type_text = format_annotation(err.field.type) if err.field is not None else ""

    if err.field is not None:
        underliner = inner_type_underliner(type_text)
        _write_struct(parts, err.struct, err.field.name, f"cannot extract {type_text!r}", underliner, colors)
    parts.append(format_text("help: ", UNKNOWN_FIELD_HELP.format(type=type_text)))

    if err.related_found:
        hints = "\n".join(f"  - {format_annotation(related)}" for related in err.related_found)
        parts.append("")
        parts.append(format_text("hint: ", "extractors found for the following types:\n" + hints))
    return "\n".join(parts)


def render_param_style(err: Any, colors: Colors = NO_COLORS) -> str:
    parts = [f"{colors.error}error{colors.reset}: openapi: {err.message}"]
    if err.field is not None:
        type_text = format_annotation(err.param_type) if err.param_type is not None else ""
        underliner = inner_type_underliner(type_text) if type_text else (lambda name, text: (0, 0))
        _write_struct(parts, err.struct, err.field.name, err.underline_message, underliner, colors)
    if err.help_text:
        parts.append(format_text("help: ", err.help_text))
    return "\n".join(parts)


def _source_location(handler: Any) -> str:
    code = getattr(handler, "__code__", None)
    if code is None:
        return ""
    parent = os.path.basename(os.path.dirname(code.co_filename))
    base = os.path.basename(code.co_filename)
    return f"{os.path.join(parent, base) if parent else base}:{code.co_firstlineno}"


def render_error(err: BaseException, colors: Colors = NO_COLORS) -> str:
    """Render any error, using its colored form when it has one."""
    render = getattr(err, "render", None)
    if callable(render):
        return render(colors)
    return str(err)


def render_handler_error(err: Any, colors: Colors = NO_COLORS) -> str:
    parts = [render_error(err.error, colors), "", f"route: {err.pattern}"]

    if err.handler is not None:
        name = getattr(err.handler, "__qualname__", repr(err.handler))
        parts.append("")
        parts.append(f"function: {name}")
        try:
            parts.append(f"| {name}{inspect.signature(err.handler)}")
        except (TypeError, ValueError):
            pass
        location = _source_location(err.handler)
        if location:
            parts.append(f"|> {location}")
    return "\n".join(parts)
