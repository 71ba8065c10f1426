from __future__ import annotations


class L2TerrainError(Exception):
    pass


class FormatError(L2TerrainError):
    """The bytes do not look like the container format we expect."""


class NotEncryptedError(FormatError):
    """Missing or malformed Lineage2VerXXX header."""


class PayloadError(L2TerrainError):
    """A pixel payload could not be located or is truncated."""


class UnsupportedFormatError(L2TerrainError):
    pass


class CacheFrozenError(L2TerrainError):
    pass


class ConfigError(L2TerrainError):
    pass
