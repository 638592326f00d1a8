"""
UI package entrypoint for the desktop shell.

Core modules must not import this package implicitly; importing UI brings
PySide6 as an optional dependency.
"""

__all__ = []
