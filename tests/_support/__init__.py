"""
Test support utilities for shipwright tests.

Fakes and builders that don't fit as pytest fixtures but are shared by
several test modules.
"""
