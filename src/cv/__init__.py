"""
CV parsing and "best of both worlds" tailoring.
The tailor never returns a CV that scores below the candidate's original.
"""
