"""
FastAPI remote store for the study tracker.

The application lives in `study_tracker.server.main:app`; it is not imported
here so that importing the package has no side effects.
"""
