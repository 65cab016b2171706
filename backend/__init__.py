"""HTTP review layer for scored photo groups."""
