"""Test support helpers (fakes and row builders) shared across test packages."""
