"""
Tests package for the file relay.
"""
