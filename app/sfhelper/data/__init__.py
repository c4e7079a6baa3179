"""Bundled data files for sfhelper."""
