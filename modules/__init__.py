"""Helper modules for the Uniform Order Portal."""

__all__ = [
    "eligibility",
    "item_keys",
    "order_categories",
    "order_events",
    "receipt_qr",
    "receipt_validity",
]
