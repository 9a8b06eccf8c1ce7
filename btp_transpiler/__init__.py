"""btp_transpiler — command-line frontend."""
from .app import cli, main

__all__ = ["cli", "main"]
