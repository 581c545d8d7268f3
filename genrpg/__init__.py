"""GenRPG — generated text adventure.

Modules, leaf-first:
  models     — typed domain entities
  schema     — wire descriptor + strict decoder for generated events
  prompts    — Handlebars instructions for the text and image backends
  llm        — text-generation backends
  images     — image-generation backends
  generator  — prompt → LLM → decoded GameEvent
  engine     — applies a chosen option to the game state
  storage    — whole-state save/load
  session    — the turn loop
  app/routes — FastAPI surface
"""
