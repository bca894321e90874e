"""
Verification profiles, claims checks and the TokenVerifier pipeline.
"""
