"""Infrastructure adapters for the route access ports.

Subpackages are imported explicitly so optional dependencies
(SQLAlchemy drivers, aiosmtplib) are only loaded when used.
"""
