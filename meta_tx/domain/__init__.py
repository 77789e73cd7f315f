"""Define the meta-transaction domain."""
