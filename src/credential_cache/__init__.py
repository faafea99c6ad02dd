"""Request-time credential cache and token issuance for upstream identity providers."""
