"""notemirror - Mirror a local note collection into a remote git repository."""

__version__ = "0.1.0"
