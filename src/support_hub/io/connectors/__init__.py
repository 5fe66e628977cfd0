"""External service connectors.

Keep this package import lightweight; connectors are imported from their own
subpackages.
"""
