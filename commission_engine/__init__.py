"""
SALES COMMISSION ENGINE
Sale, commission and marketing-package calculations with role-aware workflows.
"""

from .config import Settings
from .models import AuthContext, Role, TaxConfig
from .processor import SalesProcessor

__all__ = ['SalesProcessor', 'Settings', 'AuthContext', 'Role', 'TaxConfig']
