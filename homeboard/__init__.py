"""
HomeBoard: a small listings board.

This package provides a FastAPI application that stores home listings in a
record store and proxies their photos/videos through an external
object-storage service, plus a requests-based client and a command-line
board that drives the list/detail/add views.
"""
