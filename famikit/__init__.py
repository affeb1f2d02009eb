"""NES cartridge, mapper, audio and configuration components with ROM utilities."""

__version__ = "0.1.0"