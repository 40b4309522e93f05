"""eLakbay analytics package initialization.

Exports for testing and module access.
"""

from elakbay import lib, models

__all__ = ['lib', 'models']
