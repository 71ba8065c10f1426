"""Terrain asset recovery for encrypted Lineage 2 packages."""

from .cache import TerrainDataCache
from .cipher import decrypt_package, derive_key, encrypt_package, get_version
from .compact_index import compact_index_length, encode_compact_index, read_compact_index
from .config import ExtractConfig, load_config
from .errors import (
    CacheFrozenError,
    ConfigError,
    FormatError,
    L2TerrainError,
    NotEncryptedError,
    PayloadError,
    UnsupportedFormatError,
)
from .package import PackageReader, RefEntry, ReferenceTable
from .scanner import RawReference, scan_references

__version__ = "0.1.0"
