"""Utility functions and helpers."""

from schemaweaver.utils.helpers import (
    flatten_dict,
    merge_dicts,
    to_string_no_fail,
)

__all__ = [
    "flatten_dict",
    "merge_dicts",
    "to_string_no_fail",
]
