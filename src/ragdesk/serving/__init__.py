"""
Serving — FastAPI application exposing the assistant over HTTP.
"""
