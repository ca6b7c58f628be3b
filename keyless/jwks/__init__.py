"""JSON Web Key models and issuer key discovery."""
