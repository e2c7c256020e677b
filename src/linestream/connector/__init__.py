"""
Transports reach out to an address and return a conduit to read from.
The connector errors here are the failures a connection cycle can end with.
"""
