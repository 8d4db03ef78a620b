"""Data-access functions over the marketplace store."""
