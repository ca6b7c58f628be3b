"""Settings, logging, error taxonomy and BCS primitives."""
