"""
Services layer - business logic goes here.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Collaborators arrive through constructors (see container.py)
- Store, similarity and notification backends sit behind small interfaces
"""
