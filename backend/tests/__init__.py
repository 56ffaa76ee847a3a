"""
Pytest suite for the storefront backend.

Test categories:
- unit: pricing, gateway client, models, guards (no I/O)
- integration: services against an in-memory SQLite database
- api: the FastAPI app end to end with a scripted gateway and mailer
"""
