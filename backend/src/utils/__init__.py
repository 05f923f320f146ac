"""
Utility modules for the booking backend.

This package contains shared helpers used across the application:
datetime handling, slot resolution rules and transaction helpers.
"""
