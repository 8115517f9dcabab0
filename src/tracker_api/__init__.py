"""
FastAPI Todo Tracker backend package.

Owner-scoped todo storage, server-side completion stamping, and completion
history views. Build an application with tracker_api.main.create_app, or use
the module-level tracker_api.main.app configured from the environment.
"""

__version__ = "0.1.0"
