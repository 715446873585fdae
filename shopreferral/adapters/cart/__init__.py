"""Cart adapters exposing session line items to the core."""
