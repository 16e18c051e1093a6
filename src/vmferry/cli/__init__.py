#!/usr/bin/env python3
"""
vmferry CLI package.
"""

from .parsers import build_parser, main
from .utils import console, custom_style, resolve_config

__all__ = [
    "build_parser",
    "main",
    "console",
    "custom_style",
    "resolve_config",
]
