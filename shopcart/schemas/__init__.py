"""
Schemas package initialization.

This module makes the schemas directory a Python package for the Pydantic
models used to validate cart input and describe cart output.
"""
