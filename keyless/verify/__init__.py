"""Public-inputs hashing and keyless signature verification."""
