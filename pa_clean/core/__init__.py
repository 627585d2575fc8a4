"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants, provider field names, sentinel codes
- exceptions: Custom exception hierarchy
"""
