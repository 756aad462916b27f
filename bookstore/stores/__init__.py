"""Redis-backed storage primitives.

Stores handle:
- keys: key and hash field naming
- mapping: entity <-> flat hash encoding
- indexes: RediSearch schemas and idempotent index recreation
- redis: connection lifecycle

No business logic in stores - that belongs in services.
"""
