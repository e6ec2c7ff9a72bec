"""
The 10-indicator assessment framework used to score CVs, interview answers and job descriptions.
`catalog` holds the indicator definitions, `weights` the industry weight profiles and
`scorer` the LLM-backed scoring, comparison and feedback helpers.
"""
