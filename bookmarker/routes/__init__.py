# Routes package init
"""
Bookmarker — API Routes Package
=================================

Route Inventory:
    - annotations.py: /api/annotations/*  (annotation reads, writes and tags)
    - health.py:      GET /health         (service health check)

Routes stay thin: they pick the store call, translate failures into HTTP
responses, and leave the SQL to the stores.
"""
