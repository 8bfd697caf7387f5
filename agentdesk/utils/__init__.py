"""Utilities package."""

from .logger import get_app_logger, setup_logger, init_app_logger, mask_secret
from .jsonl_parser import parse_jsonl, parse_jsonl_line

__all__ = [
    "get_app_logger",
    "setup_logger",
    "init_app_logger",
    "mask_secret",
    "parse_jsonl",
    "parse_jsonl_line",
]
