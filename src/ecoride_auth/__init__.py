"""EcoRide Auth — authentication and token issuance for customers and riders.

Password login, registration, legacy phone sign-in, refresh-token
rotation and profile management behind one small FastAPI service.
"""

__version__ = "0.1.0"
