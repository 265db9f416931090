"""
Infrastructure Layer

Adapters for the checker and bundler ports, the shim generator,
configuration and logging.
"""
