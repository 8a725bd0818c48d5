"""
Business logic services package.

WHY: Services hold the billing rules (signing, verification, settlement)
between the API routes and data access (API -> Service -> DAO).
"""
