"""
Record framing.
"""
