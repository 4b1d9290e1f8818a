"""
Services subpackage for the contacts feature.
"""
