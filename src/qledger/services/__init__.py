"""Accounting services: portfolio books, orders and market data."""
