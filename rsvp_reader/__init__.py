"""RSVP Reader — word-at-a-time speed reading engine.

WHY: Rapid Serial Visual Presentation shows one word at a time in a fixed
spot so the eye never has to travel across a line. Reading that way only
feels natural when the rhythm follows the text: longer words and sentence
boundaries need a little more time on screen. This package owns that
rhythm and the playback position, and nothing else.

HOW: Three layers, each independently testable:
  core     — tokenizer, per-word timing, scheduler port and the RSVPEngine
             state machine (no I/O, no rendering)
  storage  — JSON-backed settings, documents and reading progress
  session  — the host that wires an engine to storage (autosave, restore,
             settings reload); the CLI is one front end on top of it

RULES:
- The engine consumes plain text and settings, emits StateSnapshots
- The engine never reads files, never persists, never renders
- Storage and import errors never leak into the engine
"""

__version__ = "0.1.0"
