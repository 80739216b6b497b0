"""
Pydantic schema package.

- cv.py: structured CV and webhook payload shapes
- submission.py: HTTP request/response bodies
"""
