# API v1 Package
from pettycash.api.v1 import petty_cash, customers, reconciliation, audit

__all__ = [
    'petty_cash',
    'customers',
    'reconciliation',
    'audit',
]
