"""Launcher for consensus layer client test networks."""
