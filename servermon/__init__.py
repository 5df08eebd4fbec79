"""servermon — terminal dashboard for ping / HTTP / SSH target health."""

__version__ = "0.3.0"
