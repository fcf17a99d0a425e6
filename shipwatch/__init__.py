"""Container inspection helpers, options, an HTTP trigger API and start-up checks."""

__version__ = "0.1.0"

__all__ = ["api", "check", "container", "flags", "trigger", "util"]