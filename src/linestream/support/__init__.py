"""
Threading support shared by the reader: cancel tokens, listener lists, retry strategies and
the background loop.
"""
