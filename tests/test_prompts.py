"""Tests for Handlebars prompt rendering: template compilation, event and image
instructions, and error handling."""

import json

import pytest

from genrpg.models import GameState, Item, Location
from genrpg.prompts import (
    PromptError,
    build_event_context,
    build_event_prompt,
    build_image_prompt,
    render_prompt,
)
from genrpg.schema import schema_example


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    result = render_prompt("Hello {{name}}!", {"name": "World"})
    assert result == "Hello World!"


def test_render_each_loop():
    tpl = "{{#each items}}{{this}} {{/each}}"
    result = render_prompt(tpl, {"items": ["a", "b", "c"]})
    assert result == "a b c "


def test_render_missing_variable():
    result = render_prompt("Hello {{name}}!", {})
    assert result == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── event instruction ────────────────────────────────────────


def test_event_context_keys(state: GameState):
    ctx = build_event_context(state.character, state.current_location)
    assert ctx["location"]["name"] == "Lake Village"
    assert ctx["character"]["level"] == 1
    assert "xp" not in ctx["character"]
    assert ctx["shape"] == schema_example("GameEvent")
    assert any(rule.startswith("Consequence.type must be one of:") for rule in ctx["rules"])


def test_event_prompt_describes_player(state: GameState):
    state.character.gold = 42
    state.character.health = 61
    prompt = build_event_prompt(state.character, state.current_location)
    assert 'a player in a village named "Lake Village"' in prompt
    assert "A quaint village with cobblestone paths and friendly faces." in prompt
    assert "The player has 42 gold and 61/100 health." in prompt
    assert "The player carries:" not in prompt


def test_event_prompt_lists_inventory(state: GameState, sword: Item):
    state.character.add_item(sword)
    prompt = build_event_prompt(state.character, state.current_location)
    assert "The player carries:" in prompt
    assert f'- Wooden Sword (weapon, id "{sword.id}")' in prompt
    assert "loseItem" in prompt


def test_event_prompt_embeds_shape_unescaped(state: GameState):
    prompt = build_event_prompt(state.character, state.current_location)
    shape = prompt.split("nothing else:\n", 1)[1]
    parsed = json.loads(shape)
    assert parsed["description"] == "<description>"
    consequence = parsed["options"][0]["consequences"][0]
    assert "changeLocation" in consequence["type"]


def test_event_prompt_keeps_quotes_in_names(state: GameState):
    den = Location(name="Ogre's Den", description='A sign reads "Keep out".', type="room")
    prompt = build_event_prompt(state.character, den)
    assert "Ogre's Den" in prompt
    assert 'A sign reads "Keep out".' in prompt
    assert "&quot;" not in prompt


def test_custom_event_template(state: GameState):
    tpl = "{{character.name}} at {{location.name}}"
    assert build_event_prompt(state.character, state.current_location, tpl) == "Hero at Lake Village"


# ── image instruction ────────────────────────────────────────


def test_image_prompt():
    prompt = build_image_prompt("A goblin & a troll share a meal.")
    assert prompt.startswith("Create a 2D pixel art scene")
    assert "A goblin & a troll share a meal." in prompt
    assert "vibrant colors" in prompt
