"""Tests for the schema codec: descriptor generation and strict decoding."""

import json
from typing import get_args
from uuid import UUID

import pytest

from genrpg.models import (
    Consequence,
    ConsequenceType,
    EventOption,
    GameEvent,
    Item,
    ItemEffect,
    Location,
)
from genrpg.schema import (
    InvalidEnumValue,
    InvalidFieldType,
    MissingRequiredField,
    NotValidJSON,
    decode,
    encode_event,
    encode_schema,
    enum_values,
    schema_example,
    schema_rules,
)


# ── encode_schema ────────────────────────────────────────────


def test_event_descriptor_top_level():
    schema = encode_schema("GameEvent")
    assert schema["type"] == "object"
    assert set(schema["properties"]) == {"description", "options"}
    assert schema["required"] == ["description", "options"]


def test_consequence_types_come_from_the_model():
    schema = encode_schema("Consequence")
    assert schema["properties"]["type"]["enum"] == list(get_args(ConsequenceType))
    assert schema["required"] == ["type"]


def test_ids_are_optional():
    for kind in ("EventOption", "Item", "Location"):
        schema = encode_schema(kind)
        assert "id" in schema["properties"]
        assert "id" not in schema["required"]


def test_nested_descriptor():
    options = encode_schema("GameEvent")["properties"]["options"]
    assert options["type"] == "array"
    consequence = options["items"]["properties"]["consequences"]["items"]
    item = consequence["properties"]["item"]
    assert item["properties"]["type"]["enum"] == ["weapon", "armor", "potion", "quest", "treasure"]
    assert item["properties"]["effect"]["properties"]["type"]["enum"] == [
        "healing", "damage", "protection",
    ]
    assert consequence["properties"]["amount"] == {"type": "integer"}
    assert consequence["properties"]["location"]["properties"]["type"]["enum"] == [
        "room", "village", "city", "road", "shop", "wilderness",
    ]


def test_unknown_kind_rejected():
    with pytest.raises(ValueError, match="Unknown entity kind"):
        encode_schema("Dragon")


def test_example_lists_every_legal_value():
    example = json.loads(schema_example())
    consequence = example["options"][0]["consequences"][0]
    assert consequence["type"].split("|") == list(get_args(ConsequenceType))
    assert consequence["item"]["effect"]["value"] == 0


def test_rules_cover_payload_requirements():
    rules = "\n".join(schema_rules())
    assert 'gainItem, loseItem consequences require "item"' in rules
    assert 'changeLocation consequences require "location"' in rules
    assert "Location.type must be one of: room, village, city, road, shop, wilderness" in rules


def test_enum_values():
    assert enum_values("ItemEffect", "type") == ("healing", "damage", "protection")


# ── decode ───────────────────────────────────────────────────


def test_decode_reference_event(goblin_event_dict):
    event = decode(json.dumps(goblin_event_dict))
    assert isinstance(event, GameEvent)

    reference = GameEvent(
        id=event.id,
        description="A goblin rushes out of the shadows with a large cleaver!",
        options=[
            EventOption(
                id="5b0e7c1e-3f0c-4c55-9d1a-0c8f2f0a1b11",
                text="Fight",
                consequences=[
                    Consequence(type="changeHealth", amount=-8),
                    Consequence(type="gainXP", amount=10),
                ],
            ),
            EventOption(
                id=event.options[1].id,
                text="Run",
                consequences=[Consequence(type="loseXP", amount=4)],
            ),
        ],
    )
    assert event == reference
    assert event.model_dump() == reference.model_dump()


def test_decode_assigns_missing_ids(goblin_event_dict):
    event = decode(json.dumps(goblin_event_dict))
    run = event.options[1]
    UUID(run.id)
    assert run.id != event.options[0].id


def test_decode_replaces_malformed_ids():
    data = {
        "description": "A merchant waves.",
        "options": [{
            "id": "option-1",
            "text": "Buy",
            "consequences": [{
                "type": "gainItem",
                "item": {
                    "id": 42, "name": "Potion", "description": "Red.", "value": 3,
                    "type": "potion", "effect": {"type": "healing", "value": 20},
                },
            }],
        }],
    }
    event = decode(json.dumps(data))
    assert isinstance(event, GameEvent)
    UUID(event.options[0].id)
    UUID(event.options[0].consequences[0].item.id)


def test_decode_keeps_valid_item_id(sword: Item):
    data = {
        "description": "A thief.",
        "options": [{
            "text": "Hand it over",
            "consequences": [{"type": "loseItem", "item": sword.model_dump()}],
        }],
    }
    event = decode(json.dumps(data))
    assert event.options[0].consequences[0].item == sword


def test_decode_full_payloads():
    data = {
        "description": "A road splits.",
        "options": [{
            "text": "Take the north road",
            "consequences": [
                {"type": "changeLocation", "location": {
                    "name": "North Road", "description": "Mud.", "type": "road"}},
                {"type": "gainItem", "item": {
                    "name": "Map", "description": "Torn.", "value": 1, "type": "quest",
                    "effect": {"type": "protection", "value": 0}}},
                {"type": "none"},
            ],
        }],
    }
    event = decode(json.dumps(data))
    consequences = event.options[0].consequences
    assert isinstance(consequences[0].location, Location)
    assert consequences[0].location.type == "road"
    assert isinstance(consequences[1].item, Item)
    assert consequences[1].item.effect == ItemEffect(type="protection", value=0)
    assert consequences[2].type == "none"


def test_unknown_extra_fields_ignored(goblin_event_dict):
    goblin_event_dict["mood"] = "tense"
    goblin_event_dict["options"][0]["difficulty"] = "hard"
    goblin_event_dict["options"][0]["consequences"][0]["flavour"] = "ouch"
    assert isinstance(decode(json.dumps(goblin_event_dict)), GameEvent)


def test_null_payloads_are_absent(goblin_event_dict):
    goblin_event_dict["options"][0]["consequences"][0]["item"] = None
    goblin_event_dict["options"][0]["consequences"][0]["location"] = None
    event = decode(json.dumps(goblin_event_dict))
    assert event.options[0].consequences[0].item is None


def test_malformed_consequence_still_decodes():
    data = {
        "description": "A chest.",
        "options": [{"text": "Open", "consequences": [{"type": "gainGold"}]}],
    }
    event = decode(json.dumps(data))
    assert event.options[0].consequences[0].missing_payload() == "amount"


def test_code_fences_stripped(goblin_event_dict):
    raw = "```json\n" + json.dumps(goblin_event_dict, indent=2) + "\n```"
    assert isinstance(decode(raw), GameEvent)


def test_surrounding_prose_stripped(goblin_event_dict):
    raw = "Here is your event:\n" + json.dumps(goblin_event_dict) + "\nEnjoy!"
    assert isinstance(decode(raw), GameEvent)


def test_not_json():
    result = decode("The goblin attacks!")
    assert isinstance(result, NotValidJSON)


def test_top_level_array_rejected():
    result = decode("[1, 2, 3]")
    assert isinstance(result, NotValidJSON)
    assert "list" in str(result)


def test_missing_description(goblin_event_dict):
    del goblin_event_dict["description"]
    assert decode(json.dumps(goblin_event_dict)) == MissingRequiredField("description", "GameEvent")


def test_empty_options(goblin_event_dict):
    goblin_event_dict["options"] = []
    assert decode(json.dumps(goblin_event_dict)) == MissingRequiredField("options", "GameEvent")


def test_missing_option_text(goblin_event_dict):
    del goblin_event_dict["options"][1]["text"]
    assert decode(json.dumps(goblin_event_dict)) == MissingRequiredField("text", "EventOption")


def test_missing_consequence_type(goblin_event_dict):
    del goblin_event_dict["options"][0]["consequences"][1]["type"]
    assert decode(json.dumps(goblin_event_dict)) == MissingRequiredField("type", "Consequence")


def test_missing_item_field():
    data = {
        "description": "Loot.",
        "options": [{"text": "Take", "consequences": [{
            "type": "gainItem",
            "item": {"name": "Ring", "description": "Gold.", "type": "treasure",
                     "effect": {"type": "protection", "value": 1}},
        }]}],
    }
    assert decode(json.dumps(data)) == MissingRequiredField("value", "Item")


def test_invalid_consequence_type(goblin_event_dict):
    goblin_event_dict["options"][0]["consequences"][0]["type"] = "gainMana"
    result = decode(json.dumps(goblin_event_dict))
    assert isinstance(result, InvalidEnumValue)
    assert result.field == "type"
    assert result.got == "gainMana"
    assert result.expected_one_of == get_args(ConsequenceType)


def test_invalid_location_type():
    data = {
        "description": "A portal.",
        "options": [{"text": "Step in", "consequences": [{
            "type": "changeLocation",
            "location": {"name": "Moon", "description": "Grey.", "type": "planet"},
        }]}],
    }
    result = decode(json.dumps(data))
    assert result == InvalidEnumValue(
        "type", "planet", ("room", "village", "city", "road", "shop", "wilderness"),
    )


def test_invalid_effect_type():
    data = {
        "description": "A bottle.",
        "options": [{"text": "Drink", "consequences": [{
            "type": "gainItem",
            "item": {"name": "Tonic", "description": "Fizzy.", "value": 2, "type": "potion",
                     "effect": {"type": "luck", "value": 1}},
        }]}],
    }
    result = decode(json.dumps(data))
    assert isinstance(result, InvalidEnumValue)
    assert result.expected_one_of == ("healing", "damage", "protection")


def test_wrong_amount_type(goblin_event_dict):
    goblin_event_dict["options"][0]["consequences"][0]["amount"] = "a lot"
    result = decode(json.dumps(goblin_event_dict))
    assert result == InvalidFieldType("amount", "Consequence", "a lot")


@pytest.mark.parametrize("amount", ["30", True, 2.5])
def test_amount_not_coerced(goblin_event_dict, amount):
    goblin_event_dict["options"][0]["consequences"][0]["amount"] = amount
    result = decode(json.dumps(goblin_event_dict))
    assert result == InvalidFieldType("amount", "Consequence", amount)


def test_item_value_not_coerced(goblin_event_dict, sword):
    item = sword.model_dump()
    item["value"] = "5"
    goblin_event_dict["options"][1]["consequences"].append({"type": "gainItem", "item": item})
    result = decode(json.dumps(goblin_event_dict))
    assert result == InvalidFieldType("value", "Item", "5")


# ── encode_event ─────────────────────────────────────────────


def test_encode_event_roundtrip(goblin_event_dict):
    event = decode(json.dumps(goblin_event_dict))
    wire = json.loads(encode_event(event))
    assert "id" not in wire
    assert "item" not in wire["options"][0]["consequences"][0]
    again = decode(json.dumps(wire))
    assert [o.model_dump() for o in again.options] == [o.model_dump() for o in event.options]
