"""espenv - install and wire up Espressif Rust toolchains."""

__version__ = "0.4.0"
