"""Trivia round services: catalog, tag filters, evaluation and round state.

Pure domain logic shared by the HTTP routes and socket handlers. Nothing
here knows about Flask or Socket.IO.
"""
