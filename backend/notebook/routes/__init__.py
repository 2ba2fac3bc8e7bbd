"""
Notebook Backend: API Routes Package
=====================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - notes.py:      GET /api/notes, POST /api/notes/upload,
                     DELETE /api/notes/{id}, GET /api/notes/download/{filename}
    - requests.py:   POST /api/requests, GET /api/requests/{my,pending,reviewed},
                     PUT /api/requests/{id}/{approve,reject}
    - summarize.py:  POST /api/summarize
    - colleges.py:   GET/POST /api/colleges
    - health.py:     GET /health

Design Principle:
    Routes are THIN. They extract data from the request, call a service and
    shape the response. Authorization and business rules live in services.
"""
