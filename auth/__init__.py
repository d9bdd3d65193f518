"""auth/ -- Authentication and authorization package for the KGL API.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and records/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
