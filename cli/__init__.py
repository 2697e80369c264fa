"""Confessio command line interface."""
