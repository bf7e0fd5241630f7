"""MQTT packet codec, topic validation and matching, identifier bitmap and PID-file helper."""

__version__ = "0.1.0"