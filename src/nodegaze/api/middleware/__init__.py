"""API middleware — caller identity, CORS."""

from nodegaze.api.middleware.auth import CallerContext
from nodegaze.api.middleware.cors import setup_cors

__all__ = ["CallerContext", "setup_cors"]
