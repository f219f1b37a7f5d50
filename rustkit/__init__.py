"""
rustkit - install, update and remove curated Rust toolkits.

A toolkit is a Rust toolchain plus a fixed set of third-party tools,
described by a ``toolset-manifest.toml``.
"""

__version__ = "0.4.0"
