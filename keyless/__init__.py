"""Keyless account authentication and zero-knowledge proof verification."""
