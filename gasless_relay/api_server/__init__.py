"""
API server package — HTTP interface of the relay.

GET /config and GET /health are read-only; POST /transfer runs
decode -> validate -> sign -> submit -> confirm behind the rate limiter.
"""
