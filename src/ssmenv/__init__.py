"""ssmenv: export AWS SSM Parameter Store parameters as environment variables."""

from __future__ import annotations

__version__ = "0.1.0"

from ssmenv.projector import load

__all__ = ["__version__", "load"]
