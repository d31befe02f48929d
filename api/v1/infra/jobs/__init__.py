"""
Background job queue.

This package provides a polling job system with:
- A durable jobs table with status-guarded claims
- Registry-based pluggable handlers
- Dedup and failure-cooldown guards on enqueue
- Fixed-delay retry up to a bounded number of attempts
"""
