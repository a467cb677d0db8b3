"""auth/ -- Authentication and authorization package for ProfileDash.

Layer rule: auth/ imports only core/, stdlib, and third-party libraries.
It does NOT import from api/ or cards/.
api/ and cards/ import from auth/, not the other way around.
"""
