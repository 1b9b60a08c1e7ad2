"""chimpchat-rest: control an Android device via REST APIs."""

__version__ = "0.1.0"
