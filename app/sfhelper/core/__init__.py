"""Core pipeline stages for sfhelper."""
