"""Logging and settings shared by the workflow builder core and CLI."""
