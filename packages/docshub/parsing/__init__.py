"""Parsers turning fetched repository files into normalized records."""

from .api_spec_parser import parse_api_spec
from .author_parser import parse_author_profile
from .document_parser import classify_document, is_blog_post, is_document, parse_markdown_document
from .metadata_parser import category_prefixes, parse_meta_file
from .release_blocks import extract_release_blocks, is_valid_release_version

__all__ = [
    "category_prefixes",
    "classify_document",
    "extract_release_blocks",
    "is_blog_post",
    "is_document",
    "is_valid_release_version",
    "parse_api_spec",
    "parse_author_profile",
    "parse_markdown_document",
    "parse_meta_file",
]
