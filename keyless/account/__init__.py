"""Keyless signing accounts built from a JWT, a pepper and a proof."""
