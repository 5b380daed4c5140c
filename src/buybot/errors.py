from __future__ import annotations


class BuybotError(Exception):
    """Base class for errors raised by buybot itself."""


class ConfigError(BuybotError):
    """Invalid or inconsistent configuration; fatal before the poll loop starts."""


class RPCError(BuybotError, RuntimeError):
    """JSON-RPC error payload or a result that cannot be decoded."""
