"""Pydantic schemas for gatekeeper domain models."""

from gatekeeper.models.auth_code import AuthCodeRecord

__all__ = ["AuthCodeRecord"]
