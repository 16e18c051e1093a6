"""Concrete backends for the vmferry interfaces."""
