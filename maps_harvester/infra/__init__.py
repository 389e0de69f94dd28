"""Infra layer utilities."""

from .rotation import RotatingPool

__all__ = ["RotatingPool"]
