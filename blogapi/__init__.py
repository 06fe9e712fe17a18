"""Blog API: authentication, posts, categories, tags and threaded comments over aiohttp"""

__version__ = "1.0.0"

from .app import create_app, main  # noqa: E402,F401
