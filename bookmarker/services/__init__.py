# Services package init
"""
Bookmarker — Data Access Layer
================================

Store Inventory:
    - BookStore:       title → book id lookup and lazy book creation
    - AnnotationStore: annotation CRUD, merge-on-import and tag associations

Both are constructed around an AsyncSession supplied by the caller (a route
dependency or the importer), so tests can hand them an in-memory SQLite
session or a mock.
"""
