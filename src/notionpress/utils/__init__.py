from .chunk import chunk_items
from .ids import extract_notion_page_id, normalize_page_id, validate_page_id
from .redact import redact

__all__ = [
    "chunk_items",
    "extract_notion_page_id",
    "normalize_page_id",
    "validate_page_id",
    "redact",
]
