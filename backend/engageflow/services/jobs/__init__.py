"""
Background jobs: record store, per-kind handlers and the asyncio runner.
"""
