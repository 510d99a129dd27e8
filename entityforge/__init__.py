"""EntityForge: generate game-world entities from free-text prompts."""

__version__ = "0.3.0"
