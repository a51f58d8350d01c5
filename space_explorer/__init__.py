"""NASA Space Explorer backend: a caching, rate-limited proxy for NASA's open APIs."""

__version__ = "1.0.0"
API_VERSION = "1.0"
