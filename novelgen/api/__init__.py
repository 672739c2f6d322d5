"""
HTTP surface for the novel generation service.

Run with:
    uvicorn novelgen.api.main:app --host 127.0.0.1 --port 8000
"""
