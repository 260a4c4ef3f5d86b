"""
Bookmarker — Application Package
==================================

Kindle/Calibre annotation service: highlights, notes and tags stored in a
relational database, served over a small REST API.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Stores (Data Access Layer)     │  ← AnnotationStore, BookStore
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

The Calibre importer (bookmarker.importer) sits beside the routes and talks
to the same stores.
"""

__version__ = "1.0.0"
