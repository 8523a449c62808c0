"""Data obscuring package."""

from kanakku.security.cipher import CipherCodec

__all__ = ["CipherCodec"]
