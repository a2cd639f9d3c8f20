"""
Shared utility helpers for the Takhrij backend.

Modules:
- fallbacks: fixed user-facing payloads for every degraded path
"""
