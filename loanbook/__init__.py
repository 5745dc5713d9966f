"""Loanbook: loan servicing back end."""

__version__ = "1.0.0"
