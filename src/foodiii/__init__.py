"""Foodiii — food ordering platform.

REST API for customers, admins and restaurant owners, plus a real-time
order feed pushed to admin dashboards over WebSocket.
"""

__version__ = "0.1.0"
