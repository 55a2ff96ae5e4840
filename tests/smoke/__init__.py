"""Smoke tests for the Demoblaze storefront critical paths."""
