"""Command-line interface adapter.

Provides operator commands (process an order, inspect pricing,
simulate a cart, read the activity log).
"""
