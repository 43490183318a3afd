"""State/store layer.

Holds the last published value per device id and decides whether a new
reading is a real change worth publishing.
"""
