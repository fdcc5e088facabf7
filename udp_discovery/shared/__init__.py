"""
Shared Package

Configuration, models, logging and utilities shared by every discovery role.
"""
