"""
Feature modules live under this package.

Each module owns its models, actions (service.py) and routes (admin.py), and
reuses the platform pieces: the section guard, audit, and the DB session.
"""
