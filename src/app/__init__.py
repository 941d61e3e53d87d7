"""School Portal API."""
