"""ERP Analyst: typed ERP analytics capabilities for language-model agents."""

__version__ = "0.1.0"
