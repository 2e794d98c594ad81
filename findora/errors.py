"""
Common Error Constants

Centralized error messages shared by the storage layer and the HTTP surface.
"""

# Cart session errors
ERROR_CART_SESSION_INVALID = "Invalid cart session"

# Storage errors
ERROR_REDIS_NOT_CONFIGURED = "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set"
