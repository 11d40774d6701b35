"""
Backend Status Server — live view of what each backend is doing.

Collects fire-and-forget UDP status packets from reverse proxies,
tracks in-flight and recently completed requests per backend, and
serves the result as a JSON document for dashboards.
"""

__version__ = "1.0.0"
