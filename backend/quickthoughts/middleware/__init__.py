# Middleware package init
"""
Quick Thoughts Backend: Middleware Package
============================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: reject excess transcribe calls before any work
    2. Request ID: correlation id for every log line of the request
    3. Logging: one access line with status and duration
"""
