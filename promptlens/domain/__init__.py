"""Domain Layer: value objects, entities, exceptions and ports.

Has no dependency on infrastructure; everything here is plain Python.
"""
