"""Splitting metric identifiers into a dotted name and a tag list."""
from typing import List, Tuple


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_."


def split_name_and_tags(identifier: str) -> Tuple[str, List[str]]:
    """
    Split ``namespace.metric[tag1:value1,tag2:value2]`` into its parts.

    Returns ``(name, tags)`` with tags in order of appearance, duplicates
    kept. An identifier without a well-formed bracket suffix is returned
    unchanged with no tags.

    >>> split_name_and_tags("my.counter[a:1,b:2]")
    ('my.counter', ['a:1', 'b:2'])
    >>> split_name_and_tags("my.counter")
    ('my.counter', [])
    """
    open_idx = identifier.find("[")
    if open_idx <= 0 or not identifier.endswith("]"):
        return identifier, []

    name = identifier[:open_idx]
    body = identifier[open_idx + 1:-1]
    if not body or "[" in body or "]" in body:
        return identifier, []
    if not all(_is_name_char(ch) for ch in name):
        return identifier, []

    return name, body.split(",")
