"""HTTP API for the LIMS RAG assistant"""
