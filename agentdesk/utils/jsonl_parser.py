"""JSONL (JSON Lines) parsing helpers."""

import json
from typing import Optional, List, Dict, Any


def parse_jsonl_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Parse a single JSONL line.

    Args:
        line: A single line of JSON

    Returns:
        Parsed JSON object, or None if the line is blank, invalid,
        or does not hold an object
    """
    try:
        line = line.strip()
        if not line:
            return None

        data = json.loads(line)
    except json.JSONDecodeError:
        return None

    return data if isinstance(data, dict) else None


def parse_jsonl(text: str) -> List[Dict[str, Any]]:
    """
    Parse a whole JSONL document, skipping lines that do not parse.

    Args:
        text: JSONL content

    Returns:
        Parsed JSON objects in document order
    """
    records = []
    for line in text.splitlines():
        data = parse_jsonl_line(line)
        if data is not None:
            records.append(data)
    return records
