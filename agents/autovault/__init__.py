"""Background entrypoints for the postmaster sweep.

``worker`` runs the fixed-interval loop as a long-lived process; ``handler``
runs a single batch per scheduled invocation.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name == "lambda_handler":
        from .handler import lambda_handler as loaded_lambda_handler

        return loaded_lambda_handler
    raise AttributeError(name)


__all__ = ["lambda_handler"]
