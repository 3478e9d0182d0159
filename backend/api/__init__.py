"""HTTP API for WordFlow"""
