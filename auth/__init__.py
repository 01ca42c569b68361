"""auth/ -- Authentication, authorization and user persistence for the Acquisitions API.

Layer rule: auth/ imports stdlib, third-party libraries, and core/ only.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
