"""
REST API blueprints for DealByrd.
"""
