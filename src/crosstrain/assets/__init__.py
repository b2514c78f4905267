"""
Assets - structured-document parsing, discovery over the project and user
roots, and the converter interface shared by every asset kind.
"""

from .base import AssetConverter, WatchTarget, is_within
from .discovery import (
    AssetEntry,
    AssetKind,
    AssetRoots,
    AssetSummary,
    discover_entries,
    get_asset_summary,
    has_any_assets,
    resolve_shadowing,
)
from .document import (
    StructuredDocument,
    camel_to_kebab,
    extract_name_from_path,
    is_safe_file_name,
    kebab_to_camel,
    kebab_to_snake,
    parse_comma_separated,
    parse_document,
    read_document,
    serialize_document,
    write_text_atomic,
)

__all__ = [
    "AssetConverter",
    "AssetEntry",
    "AssetKind",
    "AssetRoots",
    "AssetSummary",
    "StructuredDocument",
    "WatchTarget",
    "camel_to_kebab",
    "discover_entries",
    "extract_name_from_path",
    "get_asset_summary",
    "has_any_assets",
    "is_safe_file_name",
    "is_within",
    "kebab_to_camel",
    "kebab_to_snake",
    "parse_comma_separated",
    "parse_document",
    "read_document",
    "resolve_shadowing",
    "serialize_document",
    "write_text_atomic",
]
