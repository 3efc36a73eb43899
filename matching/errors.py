# matching/errors.py


class DedupeError(Exception):
    """Base class for every error this toolkit raises on purpose."""


class MalformedMapping(DedupeError, ValueError):
    """A column mapping that cannot drive record extraction."""
