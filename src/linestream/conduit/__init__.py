"""
The conduit package provides an abstraction of a readable byte stream for one connection cycle.
Concrete implementations read from TCP sockets and the standard output of external processes.
"""
