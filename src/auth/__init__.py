"""
Role-based route permissions for candidate, recruiter and admin accounts.
"""
