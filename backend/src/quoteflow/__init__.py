"""QuoteFlow - document lifecycle engine for quotations, invoices and proposals."""

__version__ = "0.1.0"
