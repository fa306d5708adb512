"""Uploads module."""

from .uploader import DiskUploader, IUploader, stored_filename

__all__ = ["DiskUploader", "IUploader", "stored_filename"]
