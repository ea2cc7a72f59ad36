'''
EduMesh backend: a multi-tenant school-management API.

The FastAPI application lives in `main.py`; import it from there.
'''
__version__ = "1.0.0"
