"""
Business codes shared by the HTTP error envelope and realtime ``error`` frames.

A client handles both transports with one switch on ``code``; the leading
digit gives the family (1 parameter, 2 not-found/business, 3 auth, 4 system,
5 rate limiting).
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # Business / lookup errors (2xxxx)
    TOKEN_EXPIRED = 20005
    NOT_FOUND = 20006
    TRIP_NOT_FOUND = 20007
    CHAT_MESSAGE_NOT_FOUND = 20008

    # Authentication / authorization (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002
    TRIP_ACCESS_DENIED = 30003
    MESSAGE_OWNERSHIP_REQUIRED = 30004

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003

    # Rate limiting (5xxxx)
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
