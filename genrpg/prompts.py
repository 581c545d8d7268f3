"""Handlebars prompt rendering for the event and image instructions."""

from collections.abc import Callable
from typing import Any

import pybars

from genrpg.models import Character, Location
from genrpg.schema import schema_example, schema_rules

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


EVENT_TEMPLATE = """\
You are creating an event for an RPG game. The event should be appropriate for \
a player in a {{{location.type}}} named "{{{location.name}}}". The location \
description is "{{{location.description}}}". The player's level is \
{{character.level}}. The player's stats are: Strength: {{character.strength}}, \
Intelligence: {{character.intelligence}}, Charisma: {{character.charisma}}. \
The player has {{character.gold}} gold and {{character.health}}/{{character.max_health}} health.
{{#if character.inventory}}
The player carries:
{{#each character.inventory}}
- {{{name}}} ({{type}}, id "{{id}}")
{{/each}}
To take one of these items away, use loseItem with that exact id.
{{/if}}

The event should be engaging, encourage exploration, and offer 2-4 quantified \
multiple-choice options. Each option must have at least one clear consequence, \
such as gaining XP, gold, items, or affecting health.

Rules:
{{#each rules}}
- {{{this}}}
{{/each}}

Respond with a single JSON object of this shape and nothing else:
{{{shape}}}
"""

IMAGE_TEMPLATE = (
    "Create a 2D pixel art scene in the style of a classic console RPG depicting: "
    "{{{description}}}. Use vibrant colors and an isometric view. "
    "The image should be campy, fun, and visually engaging."
)


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return compiled(context)
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_event_context(character: Character, location: Location) -> dict[str, Any]:
    """Assemble template variables for an event instruction."""
    return {
        "location": location.model_dump(),
        "character": character.model_dump(include={
            "name", "level", "strength", "intelligence", "charisma",
            "gold", "health", "max_health", "inventory",
        }),
        "rules": schema_rules(),
        "shape": schema_example("GameEvent"),
    }


def build_event_prompt(
    character: Character, location: Location, template: str = EVENT_TEMPLATE
) -> str:
    return render_prompt(template, build_event_context(character, location))


def build_image_prompt(description: str, template: str = IMAGE_TEMPLATE) -> str:
    return render_prompt(template, {"description": description})
