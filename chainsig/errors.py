"""Base exception for chainsig."""


class ChainsigError(Exception):
    """Base class for all errors raised by chainsig."""
