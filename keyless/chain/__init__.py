"""On-chain keyless state: resource reads, caching and resolution."""
