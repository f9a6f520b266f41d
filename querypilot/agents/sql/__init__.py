"""
SQL attempt pipeline - controller, workflow and its components
"""
