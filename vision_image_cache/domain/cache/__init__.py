"""
Cache Domain Module

Domain-Driven Design implementation for durable image cache management.
Contains entities, value objects and repository interfaces.
"""
