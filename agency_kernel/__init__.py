"""
Agency Kernel

Shared foundation for the agency back-office engine:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Decimal-only USD/EUR money values
- Injectable clock
- SQLAlchemy persistence for payout runs, payout lines and P&L rows
"""

__version__ = "0.1.0"
