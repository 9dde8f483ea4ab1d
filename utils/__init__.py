"""Shared geographic utilities."""
