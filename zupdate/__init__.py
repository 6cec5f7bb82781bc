"""Online updater: manifest parsing, patch-path selection, download, MD5 checks, and CRC-32, AES and BCJ2 helpers."""

__version__ = "2.0.0"