"""
Polymorphic entity resolution, search and creation.
"""
from app.entities.creator import EntityCreator
from app.entities.resolver import EntityResolver
from app.entities.search import EntitySearch

__all__ = ["EntityCreator", "EntityResolver", "EntitySearch"]
