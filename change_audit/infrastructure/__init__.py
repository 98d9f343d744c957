"""Adaptadores concretos: stores, dispatchers, pool de DB y retry."""
