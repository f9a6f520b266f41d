"""
Agents - the SQL attempt pipeline
"""
