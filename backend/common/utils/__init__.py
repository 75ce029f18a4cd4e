"""Common utility functions."""

from .identifiers import generate_request_number

__all__ = ["generate_request_number"]
