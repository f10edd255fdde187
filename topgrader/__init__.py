"""Configuration, dry-run aware command execution, step running and a few update steps for upgrading a machine's tools."""

__version__ = "0.1.0"