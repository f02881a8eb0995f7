"""Fixture application: a small music catalogue with policies and managers."""
