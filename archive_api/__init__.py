"""
Archive Management API.

A FastAPI gateway over a hosted Supabase project: auth, profiles, archive
item records and their stored files. All persistence lives in the backend;
this package only authorizes requests and shapes the JSON around them.
"""

__version__ = "1.0.0"
