"""
Directory account self-service portal.
"""
