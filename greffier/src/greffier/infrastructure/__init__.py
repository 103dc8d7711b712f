"""
Greffier infrastructure layer.
"""
