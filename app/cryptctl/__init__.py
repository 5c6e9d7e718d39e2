"""cryptctl - stateless manager for file-backed LUKS containers."""

__version__ = "0.1.0"
