"""Read-only access to the production database"""
