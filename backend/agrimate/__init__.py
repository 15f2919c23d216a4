"""AgriMate farm-intelligence backend."""
