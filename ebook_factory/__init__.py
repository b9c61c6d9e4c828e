"""Generate a ten-chapter e-book from a topic with the Gemini API."""

__version__ = "0.1.0"
