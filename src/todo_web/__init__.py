"""
Server-rendered todo list package.

The FastAPI application lives in ``todo_web.main``; use ``create_app`` to
build an instance with explicit settings (tests, alternative stores).
"""
