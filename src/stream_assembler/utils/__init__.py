"""Shared utilities: formatting helpers and logging set-up.

Rules
-----
* No business logic.
* Importable by any layer.
"""
