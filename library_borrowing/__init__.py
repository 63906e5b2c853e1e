"""Library Borrowing - Core Package

This package contains the core modules including:
- Settings (config.py)
- Entity records and enums (models.py)
- Database layer and schema (database.py)
- Error taxonomy (errors.py)
- Data access objects (dao/)
- Borrowing workflow (services/)
"""

__version__ = "1.0.0"
