"""
Notebook Backend: Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [CORS] → [GZip] → [Request ID] → [Access Log] → Route Handler

    - Request ID runs before the access log so every log line of a request,
      access line included, carries the same correlation id
    - CORS is outermost so preflight requests are answered without touching
      the rest of the stack
"""
