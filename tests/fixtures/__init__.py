"""Shared pytest fixtures and helpers for auth tests."""

from .core import *  # noqa: F401,F403
from .google import *  # noqa: F401,F403
from .services import *  # noqa: F401,F403
