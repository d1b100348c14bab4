"""Build output scanning and uploading."""

from .file_scanner import FileInfo, calculate_file_hash, scan_files
from .uploader import UploadResult, UploadStatus, upload_files

__all__ = [
    "FileInfo",
    "calculate_file_hash",
    "scan_files",
    "UploadResult",
    "UploadStatus",
    "upload_files",
]
