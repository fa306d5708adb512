"""Calls module."""

from .handler import CallHandler, ICallHandler

__all__ = ["CallHandler", "ICallHandler"]
