"""Rule definitions and configuration loading for sparkle."""
from __future__ import annotations

import json
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Mapping, Sequence, Union

DEFAULT_SCHEMA_PATH = Path(__file__).with_name("rules.schema.json")


@dataclass(slots=True)
class RulesValidationError(Exception):
    """Raised when a configuration file does not comply with the schema."""

    message: str
    path: tuple[str | int, ...] | None = None
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        location = ""
        if self.line is not None:
            location = f" (line {self.line}, column {self.column or 1})"
        pointer = ""
        if self.path:
            pointer = " at $" + ".".join(str(part) for part in self.path)
        return f"{self.message}{pointer}{location}"


# -- filters -------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ExtensionFilter:
    extension: str
    kind: ClassVar[str] = "extension"


@dataclass(frozen=True, slots=True)
class NameContainsFilter:
    substring: str
    kind: ClassVar[str] = "name_contains"


@dataclass(frozen=True, slots=True)
class SizeFilter:
    """Strict size bounds in bytes; a missing bound always holds."""

    gt: int | None = None
    lt: int | None = None
    kind: ClassVar[str] = "size"


@dataclass(frozen=True, slots=True)
class AgeFilter:
    older_than_days: int | None = None
    kind: ClassVar[str] = "age"


Filter = Union[ExtensionFilter, NameContainsFilter, SizeFilter, AgeFilter]


# -- actions -------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class EchoAction:
    message: str
    kind: ClassVar[str] = "echo"


@dataclass(frozen=True, slots=True)
class MoveAction:
    destination: Path
    kind: ClassVar[str] = "move"


@dataclass(frozen=True, slots=True)
class CopyAction:
    destination: Path
    kind: ClassVar[str] = "copy"


@dataclass(frozen=True, slots=True)
class DeleteAction:
    kind: ClassVar[str] = "delete"


@dataclass(frozen=True, slots=True)
class RenameAction:
    """Rename within the same directory.

    Without a *pattern* the file is renamed to *replacement*. With one,
    *pattern* is a regular expression substituted by *replacement* in the
    current file name.
    """

    replacement: str
    pattern: str | None = None
    kind: ClassVar[str] = "rename"


@dataclass(frozen=True, slots=True)
class SetPermissionsAction:
    mode: int
    kind: ClassVar[str] = "set_permissions"


@dataclass(frozen=True, slots=True)
class CompressAction:
    format: str
    kind: ClassVar[str] = "compress"


Action = Union[
    EchoAction,
    MoveAction,
    CopyAction,
    DeleteAction,
    RenameAction,
    SetPermissionsAction,
    CompressAction,
]


@dataclass(frozen=True, slots=True)
class Rule:
    """Named binding of locations to a filter set and an ordered action list."""

    name: str
    locations: tuple[Path, ...]
    filters: tuple[Filter, ...]
    actions: tuple[Action, ...]
    include_subfolders: bool = True


# -- loading -------------------------------------------------------------

def validate_config(path: str | Path, schema_path: str | Path | None = None) -> Mapping[str, Any]:
    """Parse and validate a TOML configuration file, returning the raw data."""

    return _parse_config(Path(path).read_text(encoding="utf-8"), schema_path)


def _parse_config(content: str, schema_path: str | Path | None = None) -> Mapping[str, Any]:
    schema = json.loads(Path(schema_path or DEFAULT_SCHEMA_PATH).read_text(encoding="utf-8"))
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        line, column = _decode_error_position(exc)
        raise RulesValidationError(_decode_error_message(exc), path=None, line=line, column=column) from exc

    _validate_against_schema(data, schema, content)
    return data


def load_rules(path: str | Path, *, base_dir: str | Path | None = None) -> list[Rule]:
    """Load every rule from the configuration file at *path*.

    Relative locations and destinations resolve against *base_dir*, which
    defaults to the directory holding the configuration file.
    """

    config_path = Path(path).expanduser()
    content = config_path.read_text(encoding="utf-8")
    data = _parse_config(content)
    root = Path(base_dir).expanduser().resolve() if base_dir is not None else config_path.resolve().parent
    return [
        _build_rule(raw, index, root, content)
        for index, raw in enumerate(data.get("rules", []))
    ]


def _build_rule(raw: Mapping[str, Any], index: int, root: Path, content: str) -> Rule:
    include_subfolders = raw.get("subfolders", raw.get("include_subfolders", True))
    return Rule(
        name=raw["name"],
        locations=tuple(_resolve(location, root) for location in raw["locations"]),
        filters=tuple(_build_filter(item) for item in raw["filters"]),
        actions=tuple(
            _build_action(item, root, content, ("rules", index, "actions", position))
            for position, item in enumerate(raw["actions"])
        ),
        include_subfolders=bool(include_subfolders),
    )


def _build_filter(raw: Mapping[str, Any]) -> Filter:
    if "extension" in raw:
        return ExtensionFilter(raw["extension"])
    if "name_contains" in raw:
        return NameContainsFilter(raw["name_contains"])
    if "days_older_than" in raw:
        return AgeFilter(raw["days_older_than"])
    return SizeFilter(gt=raw.get("size_gt"), lt=raw.get("size_lt"))


def _build_action(
    raw: str | Mapping[str, Any],
    root: Path,
    content: str,
    pointer: tuple[str | int, ...],
) -> Action:
    if isinstance(raw, str):
        return DeleteAction()
    if "echo" in raw:
        return EchoAction(raw["echo"])
    if "move" in raw:
        return MoveAction(_resolve(raw["move"], root))
    if "copy" in raw:
        return CopyAction(_resolve(raw["copy"], root))
    if "rename" in raw:
        spec = raw["rename"]
        return RenameAction(replacement=spec["replacement"], pattern=spec.get("pattern") or None)
    if "set_permissions" in raw:
        digits = str(raw["set_permissions"])
        if not re.fullmatch(r"[0-7]{1,4}", digits):
            raise _error(f"Invalid permission mode {digits!r}", content, pointer + ("set_permissions",))
        return SetPermissionsAction(int(digits, 8))
    return CompressAction(raw["compress"]["format"])


def _resolve(value: str, root: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path


# -- schema validation ---------------------------------------------------

def _validate_against_schema(data: Any, schema: Mapping[str, Any], content: str, path: Sequence[str | int] = ()) -> None:
    if "anyOf" in schema:
        _validate_any_of(data, schema["anyOf"], content, path)
        return

    schema_type = schema.get("type")
    if schema_type:
        _validate_type(data, schema_type, content, path)

    if schema_type == "object":
        _validate_object(data, schema, content, path)
    elif schema_type == "array":
        _validate_array(data, schema, content, path)

    if "enum" in schema and data not in schema["enum"]:
        raise _error("Value not allowed", content, path)

    minimum = schema.get("minimum")
    if minimum is not None and isinstance(data, (int, float)) and data < minimum:
        raise _error(f"Expected a value >= {minimum}", content, path)


def _validate_any_of(data: Any, options: Sequence[Mapping[str, Any]], content: str, path: Sequence[str | int]) -> None:
    for option in options:
        try:
            _validate_against_schema(data, option, content, path)
        except RulesValidationError:
            continue
        return
    raise _error("Value does not match any supported form", content, path)


def _validate_type(data: Any, schema_type: str | Sequence[str], content: str, path: Sequence[str | int]) -> None:
    types = (schema_type,) if isinstance(schema_type, str) else tuple(schema_type)
    python_types = {
        "object": dict,
        "array": list,
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
    }
    for name in types:
        if name not in python_types:
            continue
        if name in {"integer", "number"} and isinstance(data, bool):
            continue
        if isinstance(data, python_types[name]):
            return
    allowed = ", ".join(types)
    raise _error(f"Expected type {allowed}", content, path)


def _validate_object(data: Mapping[str, Any], schema: Mapping[str, Any], content: str, path: Sequence[str | int]) -> None:
    min_props = schema.get("minProperties")
    if min_props is not None and len(data) < int(min_props):
        raise _error(f"Expected at least {min_props} properties", content, path)

    for key in schema.get("required", []):
        if key not in data:
            raise _error(f"Missing required property '{key}'", content, tuple(path) + (key,))

    properties: Mapping[str, Any] = schema.get("properties", {})
    additional = schema.get("additionalProperties", True)

    for key, value in data.items():
        if key in properties:
            _validate_against_schema(value, properties[key], content, tuple(path) + (key,))
        elif isinstance(additional, Mapping):
            _validate_against_schema(value, additional, content, tuple(path) + (key,))
        elif additional is False:
            raise _error(f"Unexpected property '{key}'", content, tuple(path) + (key,))


def _validate_array(data: Sequence[Any], schema: Mapping[str, Any], content: str, path: Sequence[str | int]) -> None:
    min_items = schema.get("minItems")
    if min_items is not None and len(data) < int(min_items):
        raise _error(f"Expected at least {min_items} items", content, path)

    item_schema = schema.get("items")
    if item_schema:
        for index, item in enumerate(data):
            _validate_against_schema(item, item_schema, content, tuple(path) + (index,))


def _error(message: str, content: str, path: Sequence[str | int]) -> RulesValidationError:
    line, column = _locate_pointer(content, path)
    if line is None:
        line, column = 1, 1
    return RulesValidationError(message, tuple(path) if path else None, line, column)


def _locate_pointer(content: str, path: Sequence[str | int]) -> tuple[int | None, int | None]:
    keys = [part for part in path if isinstance(part, str)]
    if not keys:
        return None, None
    needle = re.compile(rf"(?<![\w-]){re.escape(keys[-1])}\s*=")
    for idx, line in enumerate(content.splitlines(), start=1):
        match = needle.search(line)
        if match:
            return idx, match.start() + 1
    return None, None


def _decode_error_position(exc: tomllib.TOMLDecodeError) -> tuple[int | None, int | None]:
    line = getattr(exc, "lineno", None)
    if line is not None:
        return line, getattr(exc, "colno", None)
    match = re.search(r"at line (\d+), column (\d+)", str(exc))
    if match:
        return int(match.group(1)), int(match.group(2))
    return None, None


def _decode_error_message(exc: tomllib.TOMLDecodeError) -> str:
    message = getattr(exc, "msg", None) or str(exc)
    return re.sub(r"\s*\(at .*\)$", "", message)


__all__ = [
    "Action",
    "AgeFilter",
    "CompressAction",
    "CopyAction",
    "DeleteAction",
    "EchoAction",
    "ExtensionFilter",
    "Filter",
    "MoveAction",
    "NameContainsFilter",
    "RenameAction",
    "Rule",
    "RulesValidationError",
    "SetPermissionsAction",
    "SizeFilter",
    "load_rules",
    "validate_config",
]
