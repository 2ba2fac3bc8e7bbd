"""
Pydantic request/response schemas.

The API speaks camelCase (fileUrl, examType, teacherMessage) for the SPA client;
Python code uses snake_case. CamelModel bridges the two.
"""
