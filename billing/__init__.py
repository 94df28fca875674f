"""billing package"""
from .invoices import InvoiceGenerator
from .payments import PaymentRecorder
from .results import PersistenceResult

__all__ = ["InvoiceGenerator", "PaymentRecorder", "PersistenceResult"]
