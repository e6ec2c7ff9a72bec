"""
Interview preparation plans: interviewer profiling and tailored question generation.
"""
