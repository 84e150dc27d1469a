"""AI-driven voice interviews for assessing Excel skills."""

__version__ = "1.0.0"
