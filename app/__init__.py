"""BuildTrust API application package."""
