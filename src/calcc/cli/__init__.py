"""
calcc Command-Line Interface
============================

- **calcc**: compile an expression to x86-64 assembly

Implemented as a Click application with help text and caret
diagnostics on stderr.
"""

__all__ = ["calcc"]
