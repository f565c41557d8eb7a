"""
Reference data: districts, sections and NIGP commodity codes.

Read-only lookup lists used to populate form controls.
"""
