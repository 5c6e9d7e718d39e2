"""Core engines: discovery, cleanup, resize and credential rotation."""
