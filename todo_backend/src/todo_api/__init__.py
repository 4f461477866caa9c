"""
Todo Server package.

Validates new todo items and stores them through a persistence gateway.
The FastAPI application lives in todo_api.main.
"""
