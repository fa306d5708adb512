"""Permissions module."""

from .evaluator import IPermissionEvaluator, PermissionEvaluator, check_group_permission

__all__ = ["IPermissionEvaluator", "PermissionEvaluator", "check_group_permission"]
