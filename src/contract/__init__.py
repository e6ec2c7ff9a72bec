"""
Employment contract review: text extraction from uploaded files and AI clause analysis.
"""
