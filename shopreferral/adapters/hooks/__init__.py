"""Hook bus adapters driving the core handlers.

- memory: process-local action/filter registry
"""
