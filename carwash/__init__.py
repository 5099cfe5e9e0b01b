"""Car wash booking API."""
