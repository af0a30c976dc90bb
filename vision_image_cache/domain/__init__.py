"""
Domain Layer

Image cache entities and value objects, plus layout geometry.
"""
