"""
Subground - Subculture Ground API client

Async client for the Subculture Ground backend: obfuscated request and
response envelopes, bearer-token session handling and event listings.
"""

__version__ = "0.3.0"
__author__ = "subground contributors"
