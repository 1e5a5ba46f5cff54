"""
High-level use cases for the relay.

Services orchestrate the hook store to implement the business rules
(register a slug, capture a delivery, reset a hook). Routers call these
services instead of touching a storage engine directly.
"""
