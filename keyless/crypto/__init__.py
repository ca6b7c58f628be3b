"""Poseidon, BN254/Groth16, ephemeral keys, keyless keys and signatures."""
