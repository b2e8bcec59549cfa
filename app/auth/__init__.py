"""Password hashing and session bookkeeping."""
