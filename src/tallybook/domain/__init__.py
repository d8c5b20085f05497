"""Domain layer for tallybook application.

Services are exposed lazily so that the database layer can import
``tallybook.domain.entities`` without pulling in the services that depend on it.
"""

_SERVICES = {
    "TaxService": "tallybook.domain.tax",
    "TaxResolver": "tallybook.domain.tax",
    "totalize": "tallybook.domain.totals",
    "ApplicationLedgerService": "tallybook.domain.applications",
    "ReconciliationService": "tallybook.domain.reconciliation",
    "TransactionService": "tallybook.domain.transaction",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
