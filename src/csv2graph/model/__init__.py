"""
The MODEL layer contains the session state and the request/response shapes.
It has NO knowledge of widgets or of how the backend is loaded.
"""
