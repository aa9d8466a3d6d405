"""
Prediction Proxy Application
============================

FastAPI service that relays chat questions to an upstream prediction API:

    Chat Clients → Prediction Proxy (this service) → Prediction API

See main.py for the application factory and entry point.
"""

__version__ = "1.0.0"
