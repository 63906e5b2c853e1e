"""Library Borrowing - Services Package

This package contains the business workflows built on top of the DAOs:
- Borrowing service (borrow and return)
"""
