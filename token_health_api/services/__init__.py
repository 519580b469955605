"""Services behind the Token Health API: payments, scoring, upstream data and caching."""
