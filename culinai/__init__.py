"""CulinAI: AI recipe discovery from cravings and fridge photos."""

__version__ = "1.0.0"
