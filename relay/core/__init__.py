"""
Core utilities shared across the relay.

This package hosts configuration (env vars, paths, limits), logging setup and
the admin-token gate. Routers and services depend on these primitives instead
of reading os.environ directly.
"""
