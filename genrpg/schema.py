"""Schema codec: the wire contract between the text generator and the game.

The same descriptor is used twice: embedded in the generation instruction so
the model knows what to produce, and as the definition the decoder checks
against. Both are derived mechanically from the pydantic models in
`genrpg.models`, so the legal enum values in the prompt and the values the
decoder accepts cannot drift apart.

decode() never raises for bad generator output. It returns either a
GameEvent or one of the DecodeError values below; a single error rejects the
whole event.

Wire shape (ids optional everywhere, assigned when absent or malformed):

    {"description": str,
     "options": [{"id"?, "text": str,
                  "consequences": [{"type": ConsequenceType,
                                    "amount"?: int, "item"?: Item,
                                    "location"?: Location}]}]}
"""

from __future__ import annotations

import json
import logging
import re
import types
from dataclasses import dataclass
from typing import Any, Literal, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel, ValidationError

from genrpg.models import (
    PAYLOAD_FIELDS,
    Consequence,
    EventOption,
    GameEvent,
    Item,
    ItemEffect,
    Location,
    new_id,
)

logger = logging.getLogger(__name__)

EntityKind = Literal["GameEvent", "EventOption", "Consequence", "Item", "ItemEffect", "Location"]

_ENTITIES: dict[str, type[BaseModel]] = {
    "GameEvent": GameEvent,
    "EventOption": EventOption,
    "Consequence": Consequence,
    "Item": Item,
    "ItemEffect": ItemEffect,
    "Location": Location,
}

# The event's own id is internal; the generator never sees it.
_WIRE_EXCLUDE: dict[type[BaseModel], set[str]] = {GameEvent: {"id"}}

# Wire key -> entity it holds, used to name the entity an error points into.
_CHILD_ENTITIES: dict[str, type[BaseModel]] = {
    "options": EventOption,
    "consequences": Consequence,
    "item": Item,
    "effect": ItemEffect,
    "location": Location,
}


# ---------------------------------------------------------------------------
# Decode errors
# ---------------------------------------------------------------------------

class DecodeError:
    """Base for every reason a generator response was rejected."""


@dataclass(frozen=True)
class NotValidJSON(DecodeError):
    message: str

    def __str__(self) -> str:
        return f"not valid JSON: {self.message}"


@dataclass(frozen=True)
class MissingRequiredField(DecodeError):
    field: str
    of_entity: str

    def __str__(self) -> str:
        return f"{self.of_entity} is missing required field {self.field!r}"


@dataclass(frozen=True)
class InvalidEnumValue(DecodeError):
    field: str
    got: Any
    expected_one_of: tuple[str, ...]

    def __str__(self) -> str:
        return (
            f"invalid value {self.got!r} for {self.field!r}, "
            f"expected one of: {', '.join(self.expected_one_of)}"
        )


@dataclass(frozen=True)
class InvalidFieldType(DecodeError):
    field: str
    of_entity: str
    got: Any

    def __str__(self) -> str:
        return f"{self.of_entity}.{self.field} has the wrong type: {self.got!r}"


# ---------------------------------------------------------------------------
# Schema descriptor
# ---------------------------------------------------------------------------

def encode_schema(kind: EntityKind) -> dict[str, Any]:
    """Return a JSON-Schema-shaped descriptor for one entity kind."""
    try:
        model = _ENTITIES[kind]
    except KeyError:
        raise ValueError(f"Unknown entity kind {kind!r}") from None
    return _describe_model(model)


def _describe_model(model: type[BaseModel]) -> dict[str, Any]:
    excluded = _WIRE_EXCLUDE.get(model, set())
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, field in model.model_fields.items():
        if name in excluded:
            continue
        properties[name] = _describe_annotation(field.annotation)
        if field.is_required():
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


def _describe_annotation(annotation: Any) -> dict[str, Any]:
    origin = get_origin(annotation)
    if origin is Literal:
        return {"type": "string", "enum": list(get_args(annotation))}
    if origin in (Union, types.UnionType):
        # X | None: optionality is expressed by `required`
        inner = [a for a in get_args(annotation) if a is not type(None)]
        return _describe_annotation(inner[0])
    if origin is list:
        (item_type,) = get_args(annotation)
        return {"type": "array", "items": _describe_annotation(item_type)}
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return _describe_model(annotation)
    if annotation is bool:
        return {"type": "boolean"}
    if annotation is int:
        return {"type": "integer"}
    return {"type": "string"}


def enum_values(kind: EntityKind, field: str) -> tuple[str, ...]:
    """Legal values of an enumerated field, e.g. enum_values("Item", "type")."""
    annotation = _ENTITIES[kind].model_fields[field].annotation
    return get_args(annotation)


def schema_example(kind: EntityKind = "GameEvent") -> str:
    """Render the descriptor as an indented JSON example for prompts."""
    return json.dumps(_example(encode_schema(kind)), indent=2)


def _example(descriptor: dict[str, Any], name: str = "") -> Any:
    kind = descriptor["type"]
    if kind == "object":
        return {key: _example(sub, key) for key, sub in descriptor["properties"].items()}
    if kind == "array":
        return [_example(descriptor["items"], name)]
    if "enum" in descriptor:
        return "|".join(descriptor["enum"])
    if kind == "integer":
        return 0
    if kind == "boolean":
        return False
    return f"<{name}>"


def schema_rules() -> list[str]:
    """Plain-language constraints derived from the models, for prompts."""
    rules: list[str] = []
    for kind in _ENTITIES:
        descriptor = encode_schema(kind)  # type: ignore[arg-type]
        for field, sub in descriptor["properties"].items():
            if "enum" in sub:
                rules.append(f"{kind}.{field} must be one of: {', '.join(sub['enum'])}")
    by_payload: dict[str, list[str]] = {}
    for consequence_type, payload in PAYLOAD_FIELDS.items():
        if payload is not None:
            by_payload.setdefault(payload, []).append(consequence_type)
    for payload, consequence_types in by_payload.items():
        rules.append(f"{', '.join(consequence_types)} consequences require \"{payload}\"")
    rules.append("amount is a whole number; use a negative changeHealth amount for damage")
    return rules


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


def _extract_json_text(raw: str) -> str:
    """Strip markdown fences and prose around a single JSON object."""
    cleaned = raw.strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1).strip()
    if not cleaned.startswith(("{", "[")):
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start:end + 1]
    return cleaned


def _is_uuid(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def _assign_ids(data: dict[str, Any]) -> None:
    """Give every identified object a usable id, in place."""

    def fix(obj: Any) -> None:
        if isinstance(obj, dict) and not _is_uuid(obj.get("id")):
            if "id" in obj:
                logger.debug("replacing malformed id %r", obj["id"])
            obj["id"] = new_id()

    data["id"] = new_id()
    options = data.get("options")
    if not isinstance(options, list):
        return
    for option in options:
        fix(option)
        consequences = option.get("consequences") if isinstance(option, dict) else None
        if not isinstance(consequences, list):
            continue
        for consequence in consequences:
            if not isinstance(consequence, dict):
                continue
            # null and absent payloads are the same thing
            for key in ("item", "location"):
                if key in consequence and consequence[key] is not None:
                    fix(consequence[key])


def _locate(loc: tuple[Any, ...]) -> tuple[str, str]:
    """Map a pydantic error location to (entity name, field name)."""
    keys = [part for part in loc if isinstance(part, str)]
    if not keys:
        return "GameEvent", "options"
    entity: type[BaseModel] = GameEvent
    for key in keys[:-1]:
        entity = _CHILD_ENTITIES.get(key, entity)
    return entity.__name__, keys[-1]


def _to_decode_error(exc: ValidationError) -> DecodeError:
    error = exc.errors()[0]
    entity, field = _locate(error["loc"])
    kind = error["type"]
    if kind in ("missing", "too_short"):
        return MissingRequiredField(field=field, of_entity=entity)
    if kind == "literal_error":
        return InvalidEnumValue(
            field=field,
            got=error.get("input"),
            expected_one_of=enum_values(entity, field),  # type: ignore[arg-type]
        )
    return InvalidFieldType(field=field, of_entity=entity, got=error.get("input"))


def decode(raw: str) -> GameEvent | DecodeError:
    """Decode generator output into a GameEvent, or say why it can't be."""
    text = _extract_json_text(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return NotValidJSON(str(e))
    if not isinstance(data, dict):
        return NotValidJSON(f"expected a JSON object, got {type(data).__name__}")

    _assign_ids(data)
    try:
        # strict: "30" or true is not an amount
        return GameEvent.model_validate_json(json.dumps(data), strict=True)
    except ValidationError as e:
        return _to_decode_error(e)


def encode_event(event: GameEvent) -> str:
    """Render an event in the wire shape (no event id, no null payloads)."""
    return event.model_dump_json(exclude={"id"}, exclude_none=True)
