"""Core package: configuration, errors, authentication and API clients."""
