"""
HTTP surface of the importer.
"""
