"""
EPP Stream CLI

Command-line interface for EPP stream connections.
"""
