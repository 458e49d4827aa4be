"""Proxy Guard - proxy detection service for remote test-taking"""

__version__ = "1.0.0"
