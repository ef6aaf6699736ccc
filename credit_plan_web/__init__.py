"""Storage, service and HTTP layers around the credit plan engine."""
