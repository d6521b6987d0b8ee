"""Social blog backend: users, posts, likes, comments and a follow graph."""

__version__ = "1.0.0"
