"""
HotelDesk - identity and access for the hotel ticket system.

Local accounts, Google sign-in, exchange codes, password reset, and
role-based permissions behind a FastAPI app.
"""

__version__ = "0.1.0"
