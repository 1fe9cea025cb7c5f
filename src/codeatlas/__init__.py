"""CodeAtlas: structural index of a TypeScript/JavaScript workspace."""

__version__ = "0.1.0"
