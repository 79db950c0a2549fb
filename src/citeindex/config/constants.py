"""Configuration constants.

Values here are fixed properties of the index layout and the linked-file
format. For configurable values, see models.py.
"""

# =============================================================================
# Entry Fields
# =============================================================================

KEY_FIELD = "citationkey"
"""Entry field holding the citation key."""

FILE_FIELD = "file"
"""Entry field holding the linked-file list."""

# =============================================================================
# Index Schema
# =============================================================================

KEY = "citation_key"
"""Stored, exact-match citation key."""

FILE_NAME = "file_name"
"""Stored, exact-match source file name."""

ENTRY_FILE = "entry_file"
"""Unstored composite of key and file name, for scoped deletes."""

CONTENT = "content"
"""Tokenized full text. Stored so key renames need no re-extraction."""

MODIFIED = "modified"
"""Stored file modification time (ns) at extraction."""

ENTRY_FILE_SEPARATOR = "\x1f"

LOOKUP_LIMIT = 2
"""Hits fetched by a (key, file) lookup; two is enough to detect duplicates."""
