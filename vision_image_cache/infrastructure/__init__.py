"""
Infrastructure Layer

SQL-backed durable store, store circuit breaker and HTTP image fetching.
"""
