"""Utility modules."""

from .file_utils import FileUtils
from .logger import setup_logger
from .validators import build_san_list, classify, sanitize_file_name

__all__ = ["FileUtils", "build_san_list", "classify", "sanitize_file_name", "setup_logger"]
